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

import base64
import binascii
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, TypeVar

import requests

from models.json_parsing import parse_model_json
from shared.string_utils import normalize_title
from shared.types import ChatMessage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
JSON_SYSTEM_PROMPT = "You output strict JSON only."
SIGNED_URL_EXPIRATION = datetime(2100, 1, 1, tzinfo=timezone.utc)
IMAGE_CONTENT_TYPE = "image/png"

T = TypeVar("T")


class ModelRequestException(Exception):
    """The model API could not be reached or answered with a non-2xx status."""


class ModelInvalidResponseException(Exception):
    """The model answered, but the reply was empty or not usable JSON."""


RETRYABLE_EXCEPTIONS = (ModelRequestException, ModelInvalidResponseException)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry: up to `max_attempts` sequential tries."""

    max_attempts: int = 2
    delay_seconds: float = 0.6

    def run(self, fn: Callable[[], T], sleep: Callable[[float], None]) -> T:
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except RETRYABLE_EXCEPTIONS as e:
                last_error = e
                logger.warning(
                    "Model call attempt %d/%d failed: %s",
                    attempt,
                    self.max_attempts,
                    e,
                )
                if attempt < self.max_attempts and self.delay_seconds > 0:
                    sleep(self.delay_seconds)
        raise last_error


SINGLE_ATTEMPT = RetryPolicy(max_attempts=1, delay_seconds=0)


class ModelClient:
    """
    Chat-completion and image-generation calls against an OpenAI-compatible API.

    The HTTP session, retry policy and sleep function are injectable so tests
    can run against a fake transport without waiting.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        session: requests.Session | None = None,
        storage=None,
        base_url: str = DEFAULT_BASE_URL,
        chat_model: str = "gpt-4o-mini",
        image_model: str = "gpt-image-1",
        image_size: str = "1024x1024",
        timeout_seconds: float = 60.0,
        retry_policy: RetryPolicy = RetryPolicy(),
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = (api_key or "").strip()
        self.session = session or requests.Session()
        self.storage = storage
        self.base_url = base_url.rstrip("/")
        self.chat_model = chat_model
        self.image_model = image_model
        self.image_size = image_size
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy
        self.sleep = sleep

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def _post(self, endpoint: str, payload: dict) -> dict:
        if not self.api_key:
            raise ModelRequestException("OPENAI_API_KEY is not configured")
        try:
            response = self.session.post(
                f"{self.base_url}/{endpoint}",
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            raise ModelRequestException(f"{endpoint} transport error: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ModelRequestException(f"{endpoint} returned {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise ModelInvalidResponseException(f"{endpoint} body is not JSON") from e

    def _chat_completion(self, payload: dict) -> str:
        data = self._post("chat/completions", payload)
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")

    def request_json(
        self,
        prompt: str,
        max_tokens: int,
        *,
        temperature: float = 0.2,
        system_prompt: str = JSON_SYSTEM_PROMPT,
    ) -> dict:
        """
        Requests a JSON-mode completion and returns the parsed object.

        Raises:
            ModelRequestException: If every attempt failed to reach the API.
            ModelInvalidResponseException: If the last attempt got an unusable reply.
        """
        payload = {
            "model": self.chat_model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
        }

        def attempt() -> dict:
            result = parse_model_json(self._chat_completion(payload))
            if not result.ok:
                raise ModelInvalidResponseException(result.error)
            return result.value

        return self.retry_policy.run(attempt, self.sleep)

    def chat(
        self, messages: List[ChatMessage], *, temperature: float, max_tokens: int
    ) -> str:
        """Single-attempt free-text completion. Returns the trimmed reply."""
        payload = {
            "model": self.chat_model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
                {"role": message.role, "content": message.content}
                for message in messages
            ],
        }
        reply = SINGLE_ATTEMPT.run(lambda: self._chat_completion(payload), self.sleep)
        return reply.strip()

    def generate_image_url(self, prompt: str, storage_path: str | None = None) -> str:
        """
        Generates an image and returns a URL for it, or "" on any failure.

        Base64 payloads are uploaded to `storage_path` and exchanged for a
        long-lived signed URL; without a storage path they are discarded.
        """
        try:
            data = self._post(
                "images/generations",
                {"model": self.image_model, "prompt": prompt, "size": self.image_size},
            )
        except RETRYABLE_EXCEPTIONS as e:
            logger.warning("Image generation failed: %s", e)
            return ""

        images = data.get("data") if isinstance(data, dict) else None
        first = images[0] if images and isinstance(images[0], dict) else {}
        url = normalize_title(first.get("url"))
        if url:
            return url

        base64_image = normalize_title(first.get("b64_json"))
        if not base64_image or not storage_path or self.storage is None:
            return ""
        try:
            image_bytes = base64.b64decode(base64_image, validate=True)
            self.storage.upload_bytes(storage_path, image_bytes, IMAGE_CONTENT_TYPE)
            return self.storage.signed_read_url(storage_path, SIGNED_URL_EXPIRATION)
        except (binascii.Error, ValueError) as e:
            logger.warning("Generated image payload is not valid base64: %s", e)
            return ""
        except Exception as e:
            logger.warning("Uploading generated image to %s failed: %s", storage_path, e)
            return ""
