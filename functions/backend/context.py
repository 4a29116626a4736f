"""
Explicit per-invocation wiring of the handler collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import requests

from backend.config import Settings, get_settings
from backend.db import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore
from backend.storage import (
    CosStorageClient,
    FirebaseStorageClient,
    InMemoryStorageClient,
    StorageClient,
)
from models.openai_client import ModelClient, RetryPolicy


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AppContext:
    """Everything a handler touches outside its own arguments."""

    store: DocumentStore
    storage: StorageClient
    model: ModelClient
    http: requests.Session
    settings: Settings
    clock: Callable[[], datetime] = field(default=utc_now)


def _storage_from_settings(settings: Settings) -> StorageClient:
    if settings.cos_bucket:
        return CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return FirebaseStorageClient()


def _model_from_settings(
    settings: Settings,
    api_key: str | None,
    storage: StorageClient,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] | None = None,
) -> ModelClient:
    kwargs = {"sleep": sleep} if sleep is not None else {}
    return ModelClient(
        api_key if api_key is not None else settings.openai_api_key,
        session=session,
        storage=storage,
        base_url=settings.openai_base_url,
        chat_model=settings.chat_model,
        image_model=settings.image_model,
        image_size=settings.image_size,
        timeout_seconds=settings.llm_timeout_seconds,
        retry_policy=RetryPolicy(
            max_attempts=settings.llm_max_attempts,
            delay_seconds=settings.llm_retry_delay_seconds,
        ),
        **kwargs,
    )


def create_app_context(api_key: str | None = None) -> AppContext:
    """
    Builds the deployed context: Firestore, Firebase Storage (or COS when
    configured) and the model client. Falls back to in-memory backends when
    `use_in_memory_backends` is set.

    Args:
        api_key (str | None): The model API key, usually the secret's value.
            Settings are consulted when None.
    """
    settings = get_settings()
    if settings.use_in_memory_backends:
        return create_in_memory_context(api_key=api_key, settings=settings)

    storage = _storage_from_settings(settings)
    return AppContext(
        store=FirestoreDocumentStore(),
        storage=storage,
        model=_model_from_settings(settings, api_key, storage),
        http=requests.Session(),
        settings=settings,
    )


def create_in_memory_context(
    api_key: str | None = "",
    *,
    settings: Settings | None = None,
    model_session: requests.Session | None = None,
    http: requests.Session | None = None,
    clock: Callable[[], datetime] = utc_now,
    sleep: Callable[[float], None] | None = None,
) -> AppContext:
    """
    Builds a context over in-memory stores. Tests pass fake sessions for the
    model API and the image lookups, and a no-op sleep.
    """
    settings = settings or Settings()
    storage = InMemoryStorageClient()
    return AppContext(
        store=InMemoryDocumentStore(clock=clock),
        storage=storage,
        model=_model_from_settings(settings, api_key, storage, model_session, sleep),
        http=http or requests.Session(),
        settings=settings,
        clock=clock,
    )
