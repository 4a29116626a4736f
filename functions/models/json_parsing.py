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

"""Lenient parsing of JSON objects out of model replies."""

import json
from dataclasses import dataclass
from typing import Optional

EMPTY_CONTENT = "empty_model_content"
INVALID_JSON = "invalid_model_json"
NOT_AN_OBJECT = "model_json_not_an_object"


@dataclass
class JsonParseResult:
    """Either `value` is set (success) or `error` names why parsing failed."""

    value: Optional[dict] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _load_object(text: str) -> JsonParseResult:
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        return JsonParseResult(error=NOT_AN_OBJECT)
    return JsonParseResult(value=parsed)


def parse_model_json(content: Optional[str]) -> JsonParseResult:
    """
    Parses a JSON object from model output.

    The whole trimmed reply is tried first. If that fails, the text between
    the first "{" and the last "}" is tried once, which recovers objects
    wrapped in prose or markdown fences.

    Args:
        content (str | None): The raw reply text.

    Returns:
        JsonParseResult: The parsed object, or the reason it could not be parsed.
    """
    trimmed = (content or "").strip()
    if not trimmed:
        return JsonParseResult(error=EMPTY_CONTENT)

    try:
        return _load_object(trimmed)
    except json.JSONDecodeError:
        pass

    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start < 0 or end <= start:
        return JsonParseResult(error=INVALID_JSON)
    try:
        return _load_object(trimmed[start : end + 1])
    except json.JSONDecodeError:
        return JsonParseResult(error=INVALID_JSON)
