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

"""Fake HTTP transport and fixtures shared by the function tests."""

import json
from datetime import datetime, timezone

import requests

_NO_BODY = object()

FIXED_NOW = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data=_NO_BODY):
        self.status_code = status_code
        self._json_data = json_data

    def json(self):
        if self._json_data is _NO_BODY:
            raise ValueError("No JSON body")
        return self._json_data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    """
    Replays queued responses for URLs containing a given fragment.

    Each route holds a queue of FakeResponse objects or exceptions to raise.
    The last entry of a queue is repeated once the queue is drained. Unrouted
    URLs answer 404. Every call is recorded in `calls` as (method, url, kwargs).
    """

    def __init__(self):
        self.calls = []
        self._routes = []

    def add(self, url_fragment: str, *responses) -> "FakeSession":
        self._routes.append((url_fragment, list(responses)))
        return self

    def calls_to(self, url_fragment: str) -> list:
        return [call for call in self.calls if url_fragment in call[1]]

    def _dispatch(self, method: str, url: str, kwargs: dict):
        self.calls.append((method, url, kwargs))
        for fragment, queue in self._routes:
            if fragment in url and queue:
                response = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(404)

    def post(self, url, **kwargs):
        return self._dispatch("POST", url, kwargs)

    def get(self, url, **kwargs):
        return self._dispatch("GET", url, kwargs)


def completion(content: str, status_code: int = 200) -> FakeResponse:
    return FakeResponse(
        status_code, {"choices": [{"message": {"role": "assistant", "content": content}}]}
    )


def json_completion(payload: dict) -> FakeResponse:
    return completion(json.dumps(payload))


def no_sleep(seconds: float) -> None:
    pass


def quiz_item(year: int, n: int, **overrides) -> dict:
    item = {
        "year": year,
        "question": f"Model question {n} about {year}?",
        "options": [f"Option {n}a", f"Option {n}b", f"Option {n}c", f"Option {n}d"],
        "answerIndex": n % 4,
        "explanation": f"Explanation {n}.",
    }
    item.update(overrides)
    return item


def news_item(title: str, month: int = 1, **overrides) -> dict:
    item = {
        "title": title,
        "subtitle": f"Subtitle for {title}.",
        "imageQuery": f"{title} photo",
        "month": month,
    }
    item.update(overrides)
    return item
