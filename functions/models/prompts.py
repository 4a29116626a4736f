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

from typing import List

from shared.constants import YEAR_NEWS_MONTHS

QUIZ_SYSTEM_PROMPT = "You are a strict JSON generator."

_QUIZ_DIFFICULTY_GUIDELINES = """Difficulty guidelines:
easy: basic pop culture and major events, very recognizable questions.
medium: balanced mix of pop culture, tech, sports, and world events.
hard: deeper or less obvious facts, niche events, second-tier hits, tech details."""

_NO_EXTRA_TEXT = "No markdown. No extra keys."


def make_quiz_prompt(
    year: int,
    difficulty: str,
    question_count: int,
    seed: str,
    nonce: str,
    avoid_questions: List[str],
    retry_level: int = 0,
) -> str:
    lines = [
        f"Generate exactly {question_count} nostalgia quiz questions.",
        f"Focus year: {year}. ONLY use this exact year.",
        "NO OTHER YEARS are allowed anywhere.",
        f"Difficulty hint: {difficulty or 'medium'}.",
        f"Generation nonce: {nonce}.",
        f"Deterministic seed for this group/week/year: {seed}.",
        _QUIZ_DIFFICULTY_GUIDELINES,
        "Each question must have year, question, options[4], answerIndex (0-3), explanation.",
        "Do not repeat any question text within this quiz.",
        f"Question.year MUST be {year} for every item.",
        f"No option may contain any 4-digit year other than {year}.",
    ]
    if retry_level > 0:
        lines += [
            f"RETRY {retry_level}: NO OTHER YEARS. If uncertain, rewrite the question to stay in {year}.",
            "If any question cannot be guaranteed for the exact year, replace it before returning.",
        ]
    if avoid_questions:
        lines.append("Do not reuse or closely paraphrase any of these prior questions:")
        lines += [f"{i + 1}. {q}" for i, q in enumerate(avoid_questions)]
    lines += [
        "Return ONLY JSON in this exact shape:",
        '{"questions":[{"year":%d,"question":"...","options":["a","b","c","d"],"answerIndex":0,"explanation":"..."}]}'
        % year,
    ]
    return "\n".join(lines)


def make_hero_and_ticker_prompt(year: int) -> str:
    return "\n".join(
        [
            f"Create UK-first nostalgic headlines for year {year}.",
            "Focus on UK news, showbiz, sport, and major global events that mattered in the UK conversation.",
            "Return strict JSON with fields hero and ticker.",
            "hero must be an array of exactly 3 items.",
            "Each hero item: { title, subtitle, imageQuery, month }",
            "ticker must be an array of 15 concise headlines (max 80 chars each).",
            _NO_EXTRA_TEXT,
        ]
    )


def make_months_chunk_prompt(year: int, start_month: int, end_month: int) -> str:
    month_labels = ", ".join(YEAR_NEWS_MONTHS[start_month - 1 : end_month])
    return "\n".join(
        [
            f"Create UK-first nostalgic news cards for year {year}.",
            f"Generate months {month_labels}.",
            "Return strict JSON with one key byMonth.",
            "byMonth is an object keyed by month short names (Jan..Dec).",
            "Each month must have exactly 5 items.",
            "Each item must be: { title, subtitle, imageQuery, month }",
            "subtitle must be factual one sentence, max 170 chars.",
            _NO_EXTRA_TEXT,
        ]
    )


def make_article_prompt(year: int, title: str, subtitle: str) -> str:
    return "\n".join(
        [
            f"Write a UK-first nostalgic feature article for the year {year}.",
            f"Headline: {title}",
            f"Deck: {subtitle}",
            "Return strict JSON with fields:",
            "title, subtitle, imageQuery, bodyParagraphs",
            "bodyParagraphs must be an array of exactly 5 paragraphs.",
            "Each paragraph should be 2-4 sentences, vivid but factual in tone.",
            "No markdown, no bullet points, no extra keys.",
        ]
    )


def make_hero_image_prompt(year: int, title: str, subtitle: str) -> str:
    return " ".join(
        [
            f"Cinematic realistic documentary-style scene set in {year}.",
            f"Primary subject: {title}.",
            f"Context: {subtitle}.",
            "Natural lighting, dramatic composition, period-appropriate details.",
            "No text, no logos, no watermarks.",
        ]
    )


def make_story_image_prompt(year: int, title: str) -> str:
    return " ".join(
        [
            f"Cinematic realistic documentary-style scene set in {year}.",
            f"Subject: {title}.",
            "Historically grounded atmosphere.",
            "No text, no logos, no watermarks.",
        ]
    )


def make_chat_system_prompt(year) -> str:
    return (
        f"You are a nostalgic assistant for year {year}. "
        "Keep answers concise, friendly, and practical."
    )
