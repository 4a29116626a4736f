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

"""Back-patches a generated article's image and links into its news package."""

from typing import Any, Dict, List, Optional, Tuple

from shared.string_utils import clamp_month, normalize_title, to_story_key
from shared.types import Article

# Package item field -> article attribute.
PATCHED_FIELDS = (
    ("imageUrl", "image_url"),
    ("url", "reference_url"),
    ("source", "source"),
)


def update_package_with_article(
    package_data: dict, article: Article
) -> Tuple[List[dict], Dict[str, List[dict]], bool]:
    """
    Patches every package item whose story key matches the article.

    Items are matched on (article year, item month, item title), so a card
    matches when it has the same month and an equivalent title. Only
    imageUrl, url and source are touched; everything else is copied as-is.

    Args:
        package_data (dict): The stored year news document.
        article (Article): The newly generated article.

    Returns:
        Tuple[List[dict], Dict[str, List[dict]], bool]: The full hero list,
            the full byMonth mapping, and whether anything changed.
    """
    target_key = to_story_key(article.year, article.month, article.title)
    changed = False

    def patch_item(raw: Any) -> Optional[dict]:
        nonlocal changed
        if not isinstance(raw, dict):
            return None
        item = dict(raw)
        title = normalize_title(item.get("title"))
        if not title:
            return item
        month = clamp_month(item.get("month"), article.month)
        if to_story_key(article.year, month, title) != target_key:
            return item
        for item_field, article_field in PATCHED_FIELDS:
            value = getattr(article, article_field)
            if normalize_title(item.get(item_field)) != value:
                item[item_field] = value
                changed = True
        return item

    def patch_items(raw_items: Any) -> List[dict]:
        items = raw_items if isinstance(raw_items, list) else []
        patched = [patch_item(item) for item in items]
        return [item for item in patched if item is not None]

    hero = patch_items(package_data.get("hero"))
    by_month_raw = package_data.get("byMonth")
    if not isinstance(by_month_raw, dict):
        by_month_raw = {}
    by_month = {
        month_key: patch_items(raw_items) for month_key, raw_items in by_month_raw.items()
    }
    return hero, by_month, changed
