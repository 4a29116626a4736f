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

import unittest
from datetime import timedelta

from backend.storage import InMemoryStorageClient
from content_pipeline import year_news
from main_testing_utils import (
    FIXED_NOW,
    FakeResponse,
    FakeSession,
    json_completion,
    news_item,
    no_sleep,
)
from models.openai_client import ModelClient
from shared.constants import YEAR_NEWS_MONTHS
from shared.types import GenerationStatus


def _client(session, storage=None):
    return ModelClient("test-key", session=session, storage=storage, sleep=no_sleep)


def _month_chunk(months, per_month=5, by_number=False):
    return {
        "byMonth": {
            (str(month) if by_number else YEAR_NEWS_MONTHS[month - 1]): [
                news_item(f"Story {month}-{n}", month) for n in range(per_month)
            ]
            for month in months
        }
    }


class NormalizeNewsItemTest(unittest.TestCase):

    def test_normalizes_fields(self):
        item = year_news.normalize_news_item(
            {"title": "  Live   Aid ", "subtitle": "x" * 300, "month": "7"}, 1985, 1
        )
        self.assertEqual(item.title, "Live Aid")
        self.assertEqual(len(item.subtitle), 220)
        self.assertEqual(item.image_query, "Live Aid")
        self.assertEqual(item.image_url, "")
        self.assertEqual(item.month, 7)
        self.assertEqual(item.source, "AI Historical Digest")
        self.assertEqual(
            item.url,
            "https://en.wikipedia.org/wiki/Special:Search?search=Live%20Aid%201985%20UK",
        )

    def test_month_falls_back(self):
        item = year_news.normalize_news_item(news_item("A", month=14), 1985, 9)
        self.assertEqual(item.month, 9)

    def test_drops_items_without_title_or_subtitle(self):
        self.assertIsNone(year_news.normalize_news_item({"title": "A"}, 1985, 1))
        self.assertIsNone(year_news.normalize_news_item({"subtitle": "B"}, 1985, 1))
        self.assertIsNone(year_news.normalize_news_item("A", 1985, 1))

    def test_placeholders(self):
        hero = year_news.default_news_item(1985, 3, 3, hero=True)
        self.assertEqual(hero.title, "UK spotlight in 1985 (3/3)")
        self.assertEqual(hero.month, 3)
        item = year_news.default_news_item(1985, 2, 4)
        self.assertEqual(item.title, "Feb 1985 UK spotlight (4/5)")
        self.assertEqual(item.month, 2)

    def test_pad_ticker_skips_duplicates(self):
        defaults = year_news.default_ticker_headlines(1985)
        self.assertEqual(len(defaults), 15)
        ticker = year_news.pad_ticker(1985, ["Custom", defaults[0]])
        self.assertEqual(len(ticker), 15)
        self.assertEqual(ticker[:2], ["Custom", defaults[0]])
        self.assertEqual(len(set(ticker)), 15)


class BuildHeroAndTickerTest(unittest.TestCase):

    def test_two_hero_items_are_padded_with_placeholder(self):
        session = FakeSession()
        session.add(
            "chat/completions",
            json_completion({
                "hero": [news_item("Live Aid", 7), news_item("Miners strike ends", 3)],
                "ticker": ["Headline one", "  ", "Headline two"],
            }),
        )
        session.add(
            "images/generations",
            FakeResponse(200, {"data": [{"url": "https://img.test/hero.png"}]}),
        )

        hero, ticker = year_news.build_hero_and_ticker(_client(session), 1985)

        self.assertEqual(len(hero), 3)
        self.assertEqual(hero[0].title, "Live Aid")
        self.assertEqual(hero[0].image_url, "https://img.test/hero.png")
        self.assertEqual(hero[2].title, "UK spotlight in 1985 (3/3)")
        self.assertEqual(hero[2].image_url, "")
        self.assertEqual(len(session.calls_to("images/generations")), 2)
        self.assertEqual(len(ticker), 15)
        self.assertEqual(ticker[:2], ["Headline one", "Headline two"])

    def test_hero_images_are_uploaded_under_story_key(self):
        storage = InMemoryStorageClient()
        session = FakeSession()
        session.add(
            "chat/completions",
            json_completion({"hero": [news_item("Live Aid", 7)], "ticker": []}),
        )
        session.add(
            "images/generations", FakeResponse(200, {"data": [{"b64_json": "cG5n"}]})
        )

        hero, _ = year_news.build_hero_and_ticker(_client(session, storage), 1985)

        self.assertIn("year-news/1985/hero/1985-07-live-aid.png", storage.stored_objects)
        self.assertTrue(hero[0].image_url.startswith("https://example.test/storage/"))

    def test_model_failure_yields_placeholders(self):
        session = FakeSession().add("chat/completions", FakeResponse(500))

        hero, ticker = year_news.build_hero_and_ticker(_client(session), 1985)

        self.assertEqual(
            [item.title for item in hero],
            [f"UK spotlight in 1985 ({n}/3)" for n in (1, 2, 3)],
        )
        self.assertEqual(ticker, year_news.default_ticker_headlines(1985))
        self.assertEqual(session.calls_to("images/generations"), [])


class BuildMonthsChunkTest(unittest.TestCase):

    def test_months_are_looked_up_by_name_then_number(self):
        payload = _month_chunk([1, 2], per_month=6)
        payload["byMonth"].update(_month_chunk([3], by_number=True)["byMonth"])
        session = FakeSession().add("chat/completions", json_completion(payload))

        chunk = year_news.build_months_chunk(_client(session), 1985, 1, 4)

        self.assertEqual(list(chunk), ["Jan", "Feb", "Mar", "Apr"])
        for items in chunk.values():
            self.assertEqual(len(items), 5)
        self.assertEqual(chunk["Mar"][0].title, "Story 3-0")
        self.assertEqual(chunk["Apr"][0].title, "Apr 1985 UK spotlight (1/5)")
        self.assertEqual(chunk["Apr"][4].month, 4)
        payload = session.calls[0][2]["json"]
        self.assertEqual(payload["max_tokens"], 2600)
        self.assertIn("Jan, Feb, Mar, Apr", payload["messages"][1]["content"])


class BuildYearNewsTest(unittest.TestCase):

    def test_builds_full_package_with_four_model_calls(self):
        session = FakeSession()
        session.add(
            "chat/completions",
            json_completion({"hero": [news_item("Live Aid", 7)] * 3, "ticker": ["T"] * 20}),
            json_completion(_month_chunk(range(1, 5))),
            json_completion(_month_chunk(range(5, 9))),
            json_completion(_month_chunk(range(9, 13))),
        )
        session.add("images/generations", FakeResponse(500))

        content = year_news.build_year_news(_client(session), 1985)

        self.assertEqual(len(session.calls_to("chat/completions")), 4)
        self.assertEqual(len(content.hero), 3)
        self.assertEqual(list(content.by_month), list(YEAR_NEWS_MONTHS))
        self.assertTrue(all(len(items) == 5 for items in content.by_month.values()))
        self.assertEqual(len(content.ticker), 15)

        document = year_news.year_news_document(1985, content, FIXED_NOW)
        self.assertEqual(document["generationStatus"], "complete")
        self.assertEqual(document["byMonth"]["Dec"][0]["title"], "Story 12-0")
        self.assertEqual(
            set(document["hero"][0]),
            {"title", "subtitle", "imageUrl", "imageQuery", "source", "url", "month"},
        )


class FreshnessTest(unittest.TestCase):

    def test_is_package_fresh(self):
        fresh = {"generationStatus": "complete", "updatedAt": FIXED_NOW - timedelta(days=29)}
        self.assertTrue(year_news.is_package_fresh(fresh, FIXED_NOW))

        old = dict(fresh, updatedAt=FIXED_NOW - timedelta(days=30))
        self.assertFalse(year_news.is_package_fresh(old, FIXED_NOW))

        incomplete = dict(fresh, generationStatus="")
        self.assertFalse(year_news.is_package_fresh(incomplete, FIXED_NOW))

        self.assertFalse(year_news.is_package_fresh({"generationStatus": "complete"}, FIXED_NOW))
        self.assertFalse(year_news.is_package_fresh(None, FIXED_NOW))

        naive = dict(fresh, updatedAt=(FIXED_NOW - timedelta(days=1)).replace(tzinfo=None))
        self.assertTrue(year_news.is_package_fresh(naive, FIXED_NOW))

    def test_only_complete_status_is_fresh(self):
        for status in ("", "generating", "COMPLETE", None):
            package = {"generationStatus": status, "updatedAt": FIXED_NOW}
            self.assertFalse(year_news.is_package_fresh(package, FIXED_NOW), status)
        self.assertEqual([str(s) for s in GenerationStatus], ["complete"])


if __name__ == "__main__":
    unittest.main()
