"""
Backend package for the nostalgia functions.

This package wires the collaborators each handler needs: a document store
(Firestore or in-memory), object storage for generated images (Firebase
Storage, Tencent COS or in-memory) and the model client, all configured
from environment settings.
"""
