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

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, Dict, List, Optional

from shared.json_utils import convert_keys


class Difficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def normalize(cls, raw: Any) -> "Difficulty":
        """Unknown or missing difficulties count as medium."""
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


class Provenance(StrEnum):
    AI = "ai"
    FALLBACK = "fallback"


class GenerationStatus(StrEnum):
    COMPLETE = "complete"


@dataclass
class QuizQuestion:
    year: int
    question: str
    options: List[str]
    answer_index: int
    explanation: str = ""
    source: Provenance = Provenance.AI

    def to_dict(self) -> dict:
        """Document form. q/choices/explain mirror the primary keys for older clients."""
        data = convert_keys(asdict(self), "snake_to_camel")
        data["source"] = str(self.source)
        data["q"] = self.question
        data["choices"] = list(self.options)
        data["explain"] = self.explanation
        return data


@dataclass
class SourceSummary:
    ai_count: int
    fallback_count: int


@dataclass
class QuizDefinition:
    year: int
    difficulty: Difficulty
    seed: str
    questions: List[QuizQuestion]
    source_summary: SourceSummary
    week_id: str
    generated_by: str
    model: str
    created_at: Any  # Firestore timestamp (SERVER_TIMESTAMP when written)

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "difficulty": str(self.difficulty),
            "seed": self.seed,
            "questions": [question.to_dict() for question in self.questions],
            "createdAt": self.created_at,
            "weekId": self.week_id,
            "generatedBy": self.generated_by,
            "model": self.model,
            "sourceSummary": convert_keys(asdict(self.source_summary), "snake_to_camel"),
        }


@dataclass
class NewsItem:
    """A single news card. `url` is the card's reference link."""

    title: str
    subtitle: str
    image_url: str
    image_query: str
    source: str
    url: str
    month: int

    def to_dict(self) -> dict:
        return convert_keys(asdict(self), "snake_to_camel")


@dataclass
class YearNewsContent:
    hero: List[NewsItem]
    by_month: Dict[str, List[NewsItem]]
    ticker: List[str]


@dataclass
class Article:
    story_key: str
    year: int
    month: int
    title: str
    subtitle: str
    image_url: str
    source: str
    reference_url: str
    body_paragraphs: List[str]

    def to_dict(self) -> dict:
        return convert_keys(asdict(self), "snake_to_camel")


@dataclass
class ResolvedImage:
    image_url: str
    page_url: str


@dataclass
class GroupSettings:
    quiz_difficulty: Optional[str] = None


@dataclass
class Group:
    """The subset of a group document the handlers read."""

    admin_uid: Optional[str] = None
    created_by_uid: Optional[str] = None
    current_year: Any = None
    settings: GroupSettings = field(default_factory=GroupSettings)

    @property
    def effective_admin_uid(self) -> Optional[str]:
        return self.admin_uid or self.created_by_uid


@dataclass
class ChatMessage:
    role: str
    content: str
