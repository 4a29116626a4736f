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

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import requests

from models import prompts
from models.openai_client import ModelClient
from shared.constants import FALLBACK_IMAGE_URL
from shared.string_utils import normalize_title, to_story_key, to_wiki_search_url
from shared.types import ResolvedImage

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds

WIKIPEDIA_SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/"
COMMONS_API_URL = "https://commons.wikimedia.org/w/api.php"
COMMONS_THUMBNAIL_SIZE = 1200


def _get_json(
    session: requests.Session,
    url: str,
    params: Optional[dict] = None,
    timeout: float = REQUEST_TIMEOUT,
):
    """GETs `url` and returns the decoded body, or None on any failure."""
    try:
        response = session.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        logger.info("Image lookup request to %s failed: %s", url, e)
    except ValueError as e:
        logger.info("Image lookup response from %s is not JSON: %s", url, e)
    return None


def _dict_at(data: Any, *keys: str) -> dict:
    """Walks nested dicts, returning {} wherever a level is missing or not a dict."""
    for key in keys:
        data = data.get(key) if isinstance(data, dict) else None
    return data if isinstance(data, dict) else {}


def fetch_wikipedia_summary(
    session: requests.Session, title: str, timeout: float = REQUEST_TIMEOUT
) -> Optional[ResolvedImage]:
    """
    Looks up the Wikipedia REST summary for `title`.

    Args:
        session (requests.Session): The HTTP session to use.
        title (str): The page title. Spaces become underscores.
        timeout (float): Request timeout in seconds.

    Returns:
        Optional[ResolvedImage]: The page's lead image and page URL, or None
            if the page is missing, a disambiguation page, or the lookup failed.
            The image URL is empty when the page has no image.
    """
    normalized = normalize_title(title)
    if not normalized:
        return None
    payload = _get_json(
        session,
        WIKIPEDIA_SUMMARY_URL + quote(normalized.replace(" ", "_"), safe=""),
        timeout=timeout,
    )
    if not isinstance(payload, dict) or payload.get("type") == "disambiguation":
        return None

    original = _dict_at(payload, "originalimage")
    thumbnail = _dict_at(payload, "thumbnail")
    desktop = _dict_at(payload, "content_urls", "desktop")
    return ResolvedImage(
        image_url=normalize_title(original.get("source"))
        or normalize_title(thumbnail.get("source")),
        page_url=normalize_title(desktop.get("page")),
    )


def fetch_wikimedia_image_url(
    session: requests.Session, query: str, timeout: float = REQUEST_TIMEOUT
) -> str:
    """Returns a Commons thumbnail for the top search hit of `query`, or ""."""
    safe_query = normalize_title(query)
    if not safe_query:
        return ""

    search = _get_json(
        session,
        COMMONS_API_URL,
        params={
            "action": "query",
            "list": "search",
            "srsearch": safe_query,
            "format": "json",
            "srlimit": 1,
            "utf8": 1,
        },
        timeout=timeout,
    )
    hits = _dict_at(search, "query").get("search")
    if not isinstance(hits, list) or not hits or not isinstance(hits[0], dict):
        return ""
    page_title = normalize_title(hits[0].get("title"))
    if not page_title:
        return ""

    images = _get_json(
        session,
        COMMONS_API_URL,
        params={
            "action": "query",
            "titles": page_title,
            "prop": "pageimages",
            "piprop": "thumbnail",
            "pithumbsize": COMMONS_THUMBNAIL_SIZE,
            "format": "json",
        },
        timeout=timeout,
    )
    for page in _dict_at(images, "query", "pages").values():
        thumbnail = normalize_title(_dict_at(page, "thumbnail").get("source"))
        if thumbnail:
            return thumbnail
    return ""


def candidate_titles(title: str, image_query: str, year: int) -> List[str]:
    """Lookup variants in priority order, deduplicated case-insensitively."""
    title = normalize_title(title)
    image_query = normalize_title(image_query)
    variants = []
    if title:
        variants += [title, f"{title} ({year})"]
    if image_query:
        variants += [image_query, f"{image_query} {year}"]
    if title:
        variants.append(f"{title} UK {year}")

    candidates, seen = [], set()
    for variant in variants:
        normalized = normalize_title(variant)
        key = normalized.lower()
        if key not in seen:
            seen.add(key)
            candidates.append(normalized)
    return candidates


class ImageResolver:
    """
    Finds an illustration for a story: Wikipedia summary, then Wikimedia
    Commons search, then a generated image, then a static placeholder.
    """

    def __init__(
        self,
        session: requests.Session,
        model: ModelClient,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.session = session
        self.model = model
        self.timeout = timeout

    def resolve(self, title: str, image_query: str, year: int, month: int) -> ResolvedImage:
        candidates = candidate_titles(title, image_query, year)

        for candidate in candidates:
            summary = fetch_wikipedia_summary(self.session, candidate, self.timeout)
            if summary is not None and summary.image_url:
                return summary

        for candidate in candidates:
            image_url = fetch_wikimedia_image_url(self.session, candidate, self.timeout)
            if image_url:
                return ResolvedImage(
                    image_url=image_url, page_url=to_wiki_search_url(candidate)
                )

        page_url = to_wiki_search_url(f"{title} {year}")
        story_key = to_story_key(year, month, title)
        generated = self.model.generate_image_url(
            prompts.make_story_image_prompt(year, title),
            storage_path=f"year-news/{year}/stories/{story_key}.png",
        )
        if generated:
            return ResolvedImage(image_url=generated, page_url=page_url)

        logger.info("No image found for %r (%d), using placeholder", title, year)
        return ResolvedImage(image_url=FALLBACK_IMAGE_URL, page_url=page_url)
