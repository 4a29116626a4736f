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
from unittest.mock import MagicMock

from content_pipeline import articles
from models.openai_client import ModelRequestException
from shared.types import ResolvedImage


class GenerateArticleTest(unittest.TestCase):

    def setUp(self):
        self.model = MagicMock()
        self.resolver = MagicMock()
        self.resolver.resolve.return_value = ResolvedImage(
            image_url="https://img/live-aid.jpg",
            page_url="https://en.wikipedia.org/wiki/Live_Aid",
        )

    def test_builds_article(self):
        self.model.request_json.return_value = {
            "title": "Live Aid rocks Wembley",
            "subtitle": "A global jukebox.",
            "imageQuery": "Live Aid Wembley",
            "bodyParagraphs": ["One.", "  Two  ", "", "Three.", "Four.", "Five.", "Six."],
        }

        article = articles.generate_article(
            self.model, self.resolver, 1985, 7, "Live Aid", "Concert for Africa.", "Live Aid"
        )

        self.assertEqual(article.story_key, "1985-07-live-aid-rocks-wembley")
        self.assertEqual(article.title, "Live Aid rocks Wembley")
        self.assertEqual(article.subtitle, "A global jukebox.")
        self.assertEqual(article.body_paragraphs, ["One.", "Two", "Three.", "Four.", "Five."])
        self.assertEqual(article.image_url, "https://img/live-aid.jpg")
        self.assertEqual(article.reference_url, "https://en.wikipedia.org/wiki/Live_Aid")
        self.assertEqual(article.source, "AI Historical Digest")
        self.resolver.resolve.assert_called_once_with(
            "Live Aid rocks Wembley", "Live Aid Wembley", 1985, 7
        )
        _, max_tokens = self.model.request_json.call_args[0]
        self.assertEqual(max_tokens, 2200)

    def test_missing_fields_fall_back_to_request(self):
        self.model.request_json.return_value = {"bodyParagraphs": ["One.", "Two.", "Three."]}
        self.resolver.resolve.return_value = ResolvedImage(image_url="https://img/x", page_url="")

        article = articles.generate_article(
            self.model, self.resolver, 1985, 7, "Live Aid", "Concert for Africa.", ""
        )

        self.assertEqual(article.title, "Live Aid")
        self.assertEqual(article.subtitle, "Concert for Africa.")
        self.assertEqual(article.story_key, "1985-07-live-aid")
        self.assertEqual(
            article.reference_url,
            "https://en.wikipedia.org/wiki/Special:Search?search=Live%20Aid%201985%20UK",
        )
        self.resolver.resolve.assert_called_once_with("Live Aid", "Live Aid", 1985, 7)

    def test_too_few_paragraphs_fails_without_image_lookup(self):
        self.model.request_json.return_value = {"bodyParagraphs": ["One.", " ", "Two."]}

        with self.assertRaises(articles.ArticleGenerationError):
            articles.generate_article(
                self.model, self.resolver, 1985, 7, "Live Aid", "Concert.", "Live Aid"
            )
        self.resolver.resolve.assert_not_called()

    def test_model_errors_propagate(self):
        self.model.request_json.side_effect = ModelRequestException("down")

        with self.assertRaises(ModelRequestException):
            articles.generate_article(
                self.model, self.resolver, 1985, 7, "Live Aid", "Concert.", "Live Aid"
            )

    def test_article_wire_format(self):
        self.model.request_json.return_value = {"bodyParagraphs": ["One.", "Two.", "Three."]}

        data = articles.generate_article(
            self.model, self.resolver, 1985, 7, "Live Aid", "Concert.", ""
        ).to_dict()

        self.assertEqual(
            set(data),
            {
                "storyKey",
                "year",
                "month",
                "title",
                "subtitle",
                "imageUrl",
                "source",
                "referenceUrl",
                "bodyParagraphs",
            },
        )


if __name__ == "__main__":
    unittest.main()
