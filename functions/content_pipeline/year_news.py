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

"""Builds the per-year news package: hero cards, monthly cards and a ticker."""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from models import prompts
from models.openai_client import (
    ModelClient,
    ModelInvalidResponseException,
    ModelRequestException,
)
from shared.constants import (
    YEAR_NEWS_FRESH_SECONDS,
    YEAR_NEWS_HERO_COUNT,
    YEAR_NEWS_ITEMS_PER_MONTH,
    YEAR_NEWS_MONTH_CHUNKS,
    YEAR_NEWS_MONTHS,
    YEAR_NEWS_SOURCE_LABEL,
    YEAR_NEWS_TICKER_COUNT,
)
from shared.string_utils import (
    clamp_month,
    clamp_subtitle,
    normalize_title,
    to_story_key,
    to_wiki_search_url,
)
from shared.types import GenerationStatus, NewsItem, YearNewsContent

logger = logging.getLogger(__name__)

HERO_AND_TICKER_MAX_TOKENS = 1600
MONTHS_CHUNK_MAX_TOKENS = 2600


def normalize_news_item(raw: Any, year: int, month_fallback: int) -> Optional[NewsItem]:
    """Returns a cleaned news item, or None if it lacks a title or subtitle."""
    if not isinstance(raw, dict):
        return None
    title = normalize_title(raw.get("title"))
    subtitle = clamp_subtitle(raw.get("subtitle"))
    if not title or not subtitle:
        return None
    return NewsItem(
        title=title,
        subtitle=subtitle,
        image_url="",
        image_query=normalize_title(raw.get("imageQuery")) or title,
        source=YEAR_NEWS_SOURCE_LABEL,
        url=to_wiki_search_url(f"{title} {year} UK"),
        month=clamp_month(raw.get("month"), month_fallback),
    )


def default_news_item(year: int, month: int, index: int, hero: bool = False) -> NewsItem:
    """Deterministic placeholder card, `index` being its 1-based slot."""
    month_label = YEAR_NEWS_MONTHS[month - 1]
    if hero:
        title = f"UK spotlight in {year} ({index}/{YEAR_NEWS_HERO_COUNT})"
        subtitle = f"Major UK talking points from {year}, curated for your nostalgia timeline."
    else:
        title = f"{month_label} {year} UK spotlight ({index}/{YEAR_NEWS_ITEMS_PER_MONTH})"
        subtitle = f"A key UK moment from {month_label} {year}, selected for the year timeline."
    return NewsItem(
        title=title,
        subtitle=subtitle,
        image_url="",
        image_query=title,
        source=YEAR_NEWS_SOURCE_LABEL,
        url=to_wiki_search_url(f"{title} {year} UK"),
        month=month,
    )


def default_ticker_headlines(year: int) -> List[str]:
    return [
        f"UK headlines shaping {year}",
        f"Showbiz buzz across {year}",
        f"Sport moments fans remember from {year}",
        f"Politics and public debate in {year}",
        f"Cultural shifts that defined {year}",
        f"Charts, screens, and stories from {year}",
        f"Memorable UK events from {year}",
        f"Year-in-review: standout moments in {year}",
        f"What people talked about in {year}",
        f"From Westminster to Wembley in {year}",
        f"Global stories seen through a UK lens in {year}",
        f"Flashback briefings from {year}",
        f"Broadcast highlights from {year}",
        f"Headline recap for {year}",
        f"Nostalgia feed: UK yearbook {year}",
    ]


def _request_or_empty(model: ModelClient, prompt: str, max_tokens: int, **log_fields) -> dict:
    try:
        return model.request_json(prompt, max_tokens)
    except (ModelRequestException, ModelInvalidResponseException) as e:
        logger.warning("Falling back to padded year news content %s: %s", log_fields, e)
        return {}


def _with_hero_image(model: ModelClient, year: int, item: NewsItem) -> NewsItem:
    story_key = to_story_key(year, item.month, item.title)
    image_url = model.generate_image_url(
        prompts.make_hero_image_prompt(year, item.title, item.subtitle),
        storage_path=f"year-news/{year}/hero/{story_key}.png",
    )
    return replace(item, image_url=image_url)


def pad_ticker(year: int, headlines: List[str]) -> List[str]:
    ticker = headlines[:YEAR_NEWS_TICKER_COUNT]
    for headline in default_ticker_headlines(year):
        if len(ticker) >= YEAR_NEWS_TICKER_COUNT:
            break
        if headline not in ticker:
            ticker.append(headline)
    return ticker


def build_hero_and_ticker(model: ModelClient, year: int) -> Tuple[List[NewsItem], List[str]]:
    parsed = _request_or_empty(
        model,
        prompts.make_hero_and_ticker_prompt(year),
        HERO_AND_TICKER_MAX_TOKENS,
        year=year,
    )

    hero_raw = parsed.get("hero") if isinstance(parsed.get("hero"), list) else []
    normalized = [normalize_news_item(raw, year, 1) for raw in hero_raw]
    hero = [
        _with_hero_image(model, year, item)
        for item in [item for item in normalized if item is not None][:YEAR_NEWS_HERO_COUNT]
    ]
    while len(hero) < YEAR_NEWS_HERO_COUNT:
        slot = len(hero) + 1
        hero.append(default_news_item(year, month=slot, index=slot, hero=True))

    ticker_raw = parsed.get("ticker") if isinstance(parsed.get("ticker"), list) else []
    headlines = [normalize_title(entry) for entry in ticker_raw]
    ticker = pad_ticker(year, [headline for headline in headlines if headline])
    return hero, ticker


def build_months_chunk(
    model: ModelClient, year: int, start_month: int, end_month: int
) -> Dict[str, List[NewsItem]]:
    parsed = _request_or_empty(
        model,
        prompts.make_months_chunk_prompt(year, start_month, end_month),
        MONTHS_CHUNK_MAX_TOKENS,
        year=year,
        start_month=start_month,
        end_month=end_month,
    )
    by_month_raw = parsed.get("byMonth")
    if not isinstance(by_month_raw, dict):
        by_month_raw = {}

    output = {}
    for month in range(start_month, end_month + 1):
        month_key = YEAR_NEWS_MONTHS[month - 1]
        month_raw = by_month_raw.get(month_key, by_month_raw.get(str(month)))
        items = [
            normalize_news_item(raw, year, month)
            for raw in (month_raw if isinstance(month_raw, list) else [])
        ]
        items = [item for item in items if item is not None][:YEAR_NEWS_ITEMS_PER_MONTH]
        while len(items) < YEAR_NEWS_ITEMS_PER_MONTH:
            items.append(default_news_item(year, month, index=len(items) + 1))
        output[month_key] = items
    return output


def build_year_news(model: ModelClient, year: int) -> YearNewsContent:
    """
    Generates the full package with four model calls: hero + ticker, then
    three chunks of four months. Every section is padded to its exact size.
    """
    hero, ticker = build_hero_and_ticker(model, year)
    by_month: Dict[str, List[NewsItem]] = {}
    for start_month, end_month in YEAR_NEWS_MONTH_CHUNKS:
        by_month.update(build_months_chunk(model, year, start_month, end_month))
    return YearNewsContent(hero=hero, by_month=by_month, ticker=ticker)


def year_news_document(year: int, content: YearNewsContent, updated_at: Any) -> dict:
    return {
        "year": year,
        "generationStatus": str(GenerationStatus.COMPLETE),
        "updatedAt": updated_at,
        "hero": [item.to_dict() for item in content.hero],
        "byMonth": {
            month_key: [item.to_dict() for item in items]
            for month_key, items in content.by_month.items()
        },
        "ticker": content.ticker[:YEAR_NEWS_TICKER_COUNT],
    }


def is_package_fresh(existing: Optional[dict], now: datetime) -> bool:
    """True if the stored package is complete and under 30 days old."""
    if not existing or existing.get("generationStatus") != GenerationStatus.COMPLETE:
        return False
    updated_at = existing.get("updatedAt")
    if not isinstance(updated_at, datetime):
        return False
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return (now - updated_at).total_seconds() < YEAR_NEWS_FRESH_SECONDS
