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

from content_pipeline.image_resolver import ImageResolver
from models import prompts
from models.openai_client import ModelClient
from shared.constants import (
    ARTICLE_MIN_PARAGRAPHS,
    ARTICLE_PARAGRAPH_COUNT,
    YEAR_NEWS_SOURCE_LABEL,
)
from shared.string_utils import (
    clamp_subtitle,
    normalize_title,
    to_story_key,
    to_wiki_search_url,
)
from shared.types import Article

logger = logging.getLogger(__name__)

ARTICLE_MAX_TOKENS = 2200


class ArticleGenerationError(Exception):
    """The model reply did not contain a usable article body."""


def generate_article(
    model: ModelClient,
    resolver: ImageResolver,
    year: int,
    month: int,
    title: str,
    subtitle: str,
    image_query: str = "",
) -> Article:
    """
    Writes a feature article for a news card and finds an image for it.

    Unlike the news package, an article is never padded: a reply with fewer
    than 3 non-empty paragraphs fails the whole generation.

    Args:
        model (ModelClient): The model client.
        resolver (ImageResolver): Finds the article illustration.
        year (int): The news year.
        month (int): The month (1-12) of the originating card.
        title (str): The card title.
        subtitle (str): The card subtitle.
        image_query (str): Search hint for the illustration.

    Returns:
        Article: The article, keyed by the story key of its resolved title.

    Raises:
        ModelRequestException: If the model could not be reached.
        ModelInvalidResponseException: If the reply was not a JSON object.
        ArticleGenerationError: If the reply had too few paragraphs.
    """
    parsed = model.request_json(
        prompts.make_article_prompt(year, title, subtitle), ARTICLE_MAX_TOKENS
    )

    raw_paragraphs = parsed.get("bodyParagraphs")
    if not isinstance(raw_paragraphs, list):
        raw_paragraphs = []
    paragraphs = [normalize_title(entry) for entry in raw_paragraphs]
    paragraphs = [entry for entry in paragraphs if entry][:ARTICLE_PARAGRAPH_COUNT]
    if len(paragraphs) < ARTICLE_MIN_PARAGRAPHS:
        raise ArticleGenerationError(
            f"article_body_incomplete: got {len(paragraphs)} paragraphs"
        )

    resolved_title = normalize_title(parsed.get("title")) or title
    resolved_subtitle = clamp_subtitle(parsed.get("subtitle")) or subtitle
    resolved_query = normalize_title(parsed.get("imageQuery")) or image_query or title
    image = resolver.resolve(resolved_title, resolved_query, year, month)

    return Article(
        story_key=to_story_key(year, month, resolved_title),
        year=year,
        month=month,
        title=resolved_title,
        subtitle=resolved_subtitle,
        image_url=image.image_url,
        source=YEAR_NEWS_SOURCE_LABEL,
        reference_url=image.page_url
        or to_wiki_search_url(f"{resolved_title} {year} UK"),
        body_paragraphs=paragraphs,
    )
