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

# quiz_generator.py
"""Year-locked weekly quiz generation with deterministic backfill."""

import logging
import random
import time
from dataclasses import replace
from typing import Any, Iterable, List, Optional, Tuple

from models import prompts
from models.openai_client import (
    ModelClient,
    ModelInvalidResponseException,
    ModelRequestException,
)
from shared.constants import (
    QUIZ_AVOID_LIST_LIMIT,
    QUIZ_FIRST_ROUND_REQUEST,
    QUIZ_MAX_ROUNDS,
    QUIZ_MIN_NORMALIZED_CAP,
    QUIZ_OPTION_COUNT,
    QUIZ_QUESTION_COUNT,
    QUIZ_RETRY_ROUND_REQUEST,
)
from shared.string_utils import has_other_year, question_key, to_int
from shared.types import Difficulty, Provenance, QuizQuestion

logger = logging.getLogger(__name__)

QUIZ_MAX_TOKENS = 4200
QUIZ_TEMPERATURE = 0.9

_FNV_OFFSET_BASIS = 2166136261
_FNV_PRIME = 16777619

_FALLBACK_PROMPTS = [
    "Which headline music release in {year} had the biggest cultural impact?",
    "Which live performance from {year} is most associated with that year's sound?",
    "Which soundtrack moment in {year} became widely recognizable?",
    "Which radio trend best matches mainstream listening in {year}?",
    "Which debut act most defined new talent in {year}?",
    "Which collaboration style was most visible in {year}?",
    "Which award-show music moment is most linked to {year}?",
    "Which chart pattern best describes hit songs in {year}?",
    "Which album production style stood out in {year}?",
    "Which genre crossover became common in {year}?",
    "Which tour format gained traction in {year}?",
    "Which music video direction was most typical in {year}?",
    "Which festival talking point was tied to {year}?",
    "Which breakthrough single pattern best fits {year}?",
    "Which vocal trend best reflects top songs in {year}?",
    "Which instrumentation choice was common in {year}?",
    "Which TV-and-music crossover felt most emblematic of {year}?",
    "Which pop-culture music headline best matches {year}?",
    "Which dance-floor trend was strongest in {year}?",
    "Which songwriting theme appeared most often in {year}?",
    "Which chart-climbing strategy was typical in {year}?",
    "Which live-band arrangement was most associated with {year}?",
    "Which remix trend best fits the sound of {year}?",
    "Which artist rollout style became common in {year}?",
]

_FALLBACK_OPTION_POOL = [
    "A breakthrough mainstream hit from {year}",
    "A crossover success associated with {year}",
    "A live-performance moment discussed in {year}",
    "A chart-dominating release from {year}",
    "A radio staple heavily played in {year}",
    "A soundtrack-driven song surge in {year}",
    "A genre-blending anthem tied to {year}",
    "A festival favorite strongly linked to {year}",
]


def hash_seed(value: str) -> str:
    """32-bit FNV-1a of `value`, as a decimal string."""
    h = _FNV_OFFSET_BASIS
    for ch in value:
        h ^= ord(ch)
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return str(h)


def quiz_seed(group_id: str, week_id: str, year: int, difficulty: Difficulty) -> str:
    return hash_seed(f"{group_id}:{week_id}:{year}:{difficulty}")


def _first_list(item: dict, *keys: str) -> list:
    for key in keys:
        if isinstance(item.get(key), list):
            return item[key]
    return []


def _first_present(item: dict, *keys: str) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _is_well_formed(question: QuizQuestion) -> bool:
    return (
        isinstance(question.year, int)
        and len(question.question) > 0
        and len(question.options) == QUIZ_OPTION_COUNT
        and isinstance(question.answer_index, int)
        and 0 <= question.answer_index < QUIZ_OPTION_COUNT
    )


def _coerce_question(item: Any, default_answer_index: Optional[int]) -> Optional[QuizQuestion]:
    if not isinstance(item, dict):
        return None
    options = [str(option) for option in _first_list(item, "options", "choices")[:4]]
    answer_index = to_int(_first_present(item, "answerIndex", "correctIndex"))
    if answer_index is None:
        answer_index = default_answer_index
    try:
        source = Provenance(item.get("source"))
    except ValueError:
        source = Provenance.AI
    return QuizQuestion(
        year=to_int(item.get("year")),
        question=str(_first_present(item, "question", "q") or "").strip(),
        options=options,
        answer_index=answer_index,
        explanation=str(_first_present(item, "explanation", "explain") or "").strip(),
        source=source,
    )


def normalize_questions(raw: Any, max_count: int = QUIZ_MIN_NORMALIZED_CAP) -> List[QuizQuestion]:
    """Parses model output into well-formed questions, dropping the rest."""
    if not isinstance(raw, list):
        return []
    questions = [_coerce_question(item, None) for item in raw[:max_count]]
    return [q for q in questions if q is not None and _is_well_formed(q)]


def coerce_existing_questions(raw: Any) -> List[QuizQuestion]:
    """
    Reads questions from a stored quiz, accepting the legacy q/choices/explain
    and correctIndex keys. Year is not checked here.
    """
    if not isinstance(raw, list):
        return []
    questions = [_coerce_question(item, 0) for item in raw[:QUIZ_QUESTION_COUNT]]
    return [
        q
        for q in questions
        if q is not None and q.question and len(q.options) == QUIZ_OPTION_COUNT
    ]


def filter_questions_to_year(questions: Iterable[QuizQuestion], year: int) -> List[QuizQuestion]:
    return [q for q in questions if q.year == year and _is_well_formed(q)]


def dedupe_questions(
    questions: Iterable[QuizQuestion], seen: Optional[set] = None
) -> List[QuizQuestion]:
    """Keeps the first question per normalized text. Updates `seen` in place."""
    seen = set() if seen is None else seen
    unique = []
    for question in questions:
        key = question_key(question.question)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(question)
    return unique


def fallback_questions(year: int, avoid_questions: Iterable[str] = ()) -> List[QuizQuestion]:
    """
    The synthetic question bank for `year`, minus any question in
    `avoid_questions`. Answer indexes rotate as (year + bank index) mod 4.
    """
    avoid = {question_key(q) for q in avoid_questions}
    avoid.discard("")
    pool_size = len(_FALLBACK_OPTION_POOL)
    bank = []
    for index, template in enumerate(_FALLBACK_PROMPTS):
        options = [
            _FALLBACK_OPTION_POOL[(index + offset) % pool_size].format(year=year)
            for offset in (0, 2, 4, 6)
        ]
        bank.append(
            QuizQuestion(
                year=year,
                question=template.format(year=year),
                options=options,
                answer_index=(year + index) % QUIZ_OPTION_COUNT,
                explanation=f"Fallback year-locked question for {year}.",
                source=Provenance.FALLBACK,
            )
        )
    return [q for q in bank if question_key(q.question) not in avoid]


def filler_question(year: int, number: int) -> QuizQuestion:
    return QuizQuestion(
        year=year,
        question=f"Year {year} music memory check #{number}",
        options=[
            f"Notable release in {year}",
            f"Popular radio trend in {year}",
            f"Major live performance in {year}",
            f"Breakout artist moment in {year}",
        ],
        answer_index=0,
        explanation=f"Fallback filler for strict year {year}.",
        source=Provenance.FALLBACK,
    )


def cached_questions_if_fresh(
    existing: Optional[dict], year: int, difficulty: Difficulty
) -> Optional[List[QuizQuestion]]:
    """
    Returns the stored questions if the stored quiz can be served as-is.

    A stored quiz is fresh when it is for `year` at `difficulty`, has
    exactly 20 year-locked questions and records a provenance summary.
    """
    if not existing:
        return None
    strict = filter_questions_to_year(
        coerce_existing_questions(existing.get("questions")), year
    )
    summary = existing.get("sourceSummary")
    has_summary = (
        isinstance(summary, dict)
        and isinstance(summary.get("aiCount"), int)
        and isinstance(summary.get("fallbackCount"), int)
    )
    if (
        len(strict) != QUIZ_QUESTION_COUNT
        or to_int(existing.get("year")) != year
        or not has_summary
        or Difficulty.normalize(existing.get("difficulty")) != difficulty
    ):
        return None
    return strict


def _avoid_list(prior: List[str], accepted: List[QuizQuestion]) -> List[str]:
    """Prior and already-accepted question texts, deduplicated and capped."""
    avoid, seen = [], set()
    for text in list(prior) + [q.question for q in accepted]:
        key = question_key(text)
        if key and key not in seen:
            seen.add(key)
            avoid.append(text.strip())
    return avoid[:QUIZ_AVOID_LIST_LIMIT]


def _make_nonce(seed: str) -> str:
    return f"{seed}_{int(time.time() * 1000)}_{random.randrange(1000000)}"


def generate_model_questions(
    model: ModelClient,
    year: int,
    difficulty: Difficulty,
    seed: str,
    avoid_questions: List[str],
) -> List[QuizQuestion]:
    """
    Collects up to 20 unique year-locked questions over at most 5 model rounds.

    A failed round ends generation; questions accepted before it are kept.
    """
    seen: set = set()
    accepted: List[QuizQuestion] = []
    for round_index in range(QUIZ_MAX_ROUNDS):
        if len(accepted) >= QUIZ_QUESTION_COUNT:
            break
        request_count = QUIZ_FIRST_ROUND_REQUEST if round_index == 0 else QUIZ_RETRY_ROUND_REQUEST
        round_seed = seed if round_index == 0 else f"{seed}_retry_{round_index}"
        avoid = _avoid_list(avoid_questions, accepted)
        prompt = prompts.make_quiz_prompt(
            year=year,
            difficulty=str(difficulty),
            question_count=request_count,
            seed=round_seed,
            nonce=_make_nonce(round_seed),
            avoid_questions=avoid,
            retry_level=round_index,
        )
        try:
            parsed = model.request_json(
                prompt,
                QUIZ_MAX_TOKENS,
                temperature=QUIZ_TEMPERATURE,
                system_prompt=prompts.QUIZ_SYSTEM_PROMPT,
            )
        except (ModelRequestException, ModelInvalidResponseException) as e:
            logger.warning("Quiz round %d failed for year %d: %s", round_index, year, e)
            break

        raw = parsed.get("questions")
        normalized = normalize_questions(raw, max(request_count, QUIZ_MIN_NORMALIZED_CAP))
        year_locked = filter_questions_to_year(normalized, year)
        unique_before = len(accepted)
        for question in dedupe_questions(year_locked, seen):
            accepted.append(replace(question, source=Provenance.AI))
            if len(accepted) >= QUIZ_QUESTION_COUNT:
                break
        logger.info(
            "Quiz round metrics: retry=%d requested=%d raw=%d normalized=%d "
            "yearLocked=%d uniqueBefore=%d uniqueAfter=%d otherYearOptions=%d",
            round_index,
            request_count,
            len(raw) if isinstance(raw, list) else 0,
            len(normalized),
            len(year_locked),
            unique_before,
            len(accepted),
            sum(1 for q in accepted if has_other_year(q.options, year)),
        )
    return accepted


def backfill_questions(year: int, questions: List[QuizQuestion]) -> List[QuizQuestion]:
    """Tops `questions` up to exactly 20 from the fallback bank, then fillers."""
    filled = list(questions[:QUIZ_QUESTION_COUNT])
    seen = {question_key(q.question) for q in filled}
    candidates = fallback_questions(year, [q.question for q in filled])
    for question in dedupe_questions(candidates, seen):
        if len(filled) >= QUIZ_QUESTION_COUNT:
            break
        filled.append(question)

    number = 1
    while len(filled) < QUIZ_QUESTION_COUNT:
        filler = filler_question(year, number)
        key = question_key(filler.question)
        if key not in seen:
            seen.add(key)
            filled.append(filler)
        number += 1
    return filled


def generate_quiz_questions(
    model: ModelClient,
    year: int,
    difficulty: Difficulty,
    seed: str,
    avoid_questions: List[str],
) -> Tuple[List[QuizQuestion], int]:
    """
    Generates exactly 20 questions for `year`.

    Returns:
        Tuple[List[QuizQuestion], int]: The questions and how many came from the model.
    """
    model_questions = generate_model_questions(
        model, year, difficulty, seed, avoid_questions
    )
    questions = backfill_questions(year, model_questions)
    ai_count = sum(1 for q in questions if q.source == Provenance.AI)
    logger.info(
        "Quiz for %d: %d model questions, %d fallback",
        year,
        ai_count,
        len(questions) - ai_count,
    )
    return questions, ai_count
