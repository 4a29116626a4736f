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

import re
from typing import Any, Optional
from urllib.parse import quote

from shared.constants import MAX_SUBTITLE_LENGTH, MAX_SLUG_LENGTH

_WHITESPACE_RE = re.compile(r"\s+")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
_YEAR_TOKEN_RE = re.compile(r"\b(?:19|20)\d{2}\b")


def normalize_title(raw: Any) -> str:
    """Collapses runs of whitespace and trims. None becomes an empty string."""
    if raw is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(raw)).strip()


def clamp_subtitle(raw: Any, max_length: int = MAX_SUBTITLE_LENGTH) -> str:
    subtitle = normalize_title(raw)
    if len(subtitle) > max_length:
        return subtitle[: max_length - 3] + "..."
    return subtitle


def to_int(value: Any) -> Optional[int]:
    """Integer value of an int, integral float or numeric string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def clamp_month(raw: Any, fallback: int = 1) -> int:
    """Returns raw as a month number in 1..12, or fallback if it isn't one."""
    month = to_int(raw)
    if month is None or month < 1 or month > 12:
        return fallback
    return month


def slugify(raw: Any, max_length: int = MAX_SLUG_LENGTH) -> str:
    slug = _NON_SLUG_RE.sub("-", normalize_title(raw).lower()).strip("-")
    return slug[:max_length]


def to_story_key(year: int, month: int, title: Any) -> str:
    """
    Derives the stable key joining a news item to its generated article.

    Args:
        year (int): The news year.
        month (int): The month (1-12) the story belongs to.
        title (Any): The story title. Case and whitespace do not matter.

    Returns:
        str: A key like "2001-03-thing".
    """
    return f"{year}-{month:02d}-{slugify(title) or 'story'}"


def question_key(question: Any) -> str:
    """Normalized question text used for deduplication."""
    return normalize_title(question).lower()


def to_wiki_search_url(query: Any) -> str:
    normalized = normalize_title(query)
    if not normalized:
        return ""
    return (
        "https://en.wikipedia.org/wiki/Special:Search?search="
        + quote(normalized, safe="")
    )


def find_year_tokens(text: str) -> list[int]:
    return [int(match) for match in _YEAR_TOKEN_RE.findall(text or "")]


def has_other_year(options: list[str], year: int) -> bool:
    """True if any option mentions a 4-digit year other than `year`."""
    for option in options:
        if any(token != year for token in find_year_tokens(option)):
            return True
    return False
