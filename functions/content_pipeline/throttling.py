# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""Fixed-window per-caller rate limiting backed by document transactions."""

import logging
from datetime import datetime, timedelta, timezone

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.db import DocumentStore, doc_path
from shared.constants import RATE_LIMITS_COLLECTION

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    def __init__(self, action_key: str, max_requests: int):
        super().__init__(
            f"Rate limit exceeded for {action_key} ({max_requests} per window)."
        )
        self.action_key = action_key
        self.max_requests = max_requests


def window_index(now: datetime, window_seconds: float) -> int:
    window_ms = int(window_seconds * 1000)
    return int(now.timestamp() * 1000) // window_ms


def try_consume(
    store: DocumentStore,
    uid: str,
    action_key: str,
    max_requests: int,
    window_seconds: float,
    now: datetime | None = None,
) -> int:
    """
    Counts one request against the caller's bucket for the current window.

    The bucket is keyed by (uid, action_key, window index) and updated in a
    single transaction. Buckets are never decremented; `expiresAt` is set two
    windows ahead so stale buckets can be reclaimed by a TTL policy.

    Args:
        store (DocumentStore): Where buckets live.
        uid (str): The caller id.
        action_key (str): The rate-limited action, e.g. "chat_minute".
        max_requests (int): Requests allowed per window.
        window_seconds (float): The window length.
        now (datetime | None): The current time, for tests.

    Returns:
        int: The bucket count after this request.

    Raises:
        RateLimitExceeded: If the bucket already holds `max_requests`.
    """
    now = now or datetime.now(timezone.utc)
    bucket = window_index(now, window_seconds)
    path = doc_path(RATE_LIMITS_COLLECTION, f"{uid}_{action_key}_{bucket}")

    def _consume(current: dict | None) -> dict:
        count = (current or {}).get("count")
        count = count if isinstance(count, int) else 0
        if count >= max_requests:
            logger.info("Rate limit hit: uid=%s key=%s bucket=%s", uid, action_key, bucket)
            raise RateLimitExceeded(action_key, max_requests)
        return {
            "uid": uid,
            "key": action_key,
            "bucket": bucket,
            "count": count + 1,
            "updatedAt": SERVER_TIMESTAMP,
            "expiresAt": now + timedelta(seconds=window_seconds * 2),
        }

    return store.run_transaction(path, _consume)["count"]
