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

# Cloud functions for the nostalgia app backend - weekly quiz, year news and chat.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Third-party library imports
from dacite import from_dict, Config
from firebase_admin import initialize_app
from firebase_functions import https_fn, logger, options
from firebase_functions.params import SecretParam
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

# Local application imports
from answers import chat
from backend.context import AppContext, create_app_context
from backend.db import doc_path
from content_pipeline import articles, quiz_generator, reconcile, throttling, year_news
from content_pipeline.image_resolver import ImageResolver
from models.openai_client import ModelInvalidResponseException, ModelRequestException
from shared.constants import (
    CHAT_RATE_LIMIT,
    DEFAULT_YEAR,
    GROUPS_COLLECTION,
    MAX_CHAT_MESSAGE_LENGTH,
    MAX_QUIZ_YEAR,
    MAX_YEAR_NEWS_YEAR,
    MEMBERS_COLLECTION,
    MIN_QUIZ_YEAR,
    MIN_YEAR_NEWS_YEAR,
    QUIZ_COLLECTION,
    QUIZ_DEFINITION_DOC,
    QUIZ_GENERATION_RATE_LIMIT,
    QUIZ_MODEL_LABEL,
    STORIES_COLLECTION,
    WEEKS_COLLECTION,
    YEAR_NEWS_ARTICLE_RATE_LIMIT,
    YEAR_NEWS_COLLECTION,
    YEAR_NEWS_RATE_LIMIT,
)
from shared.json_utils import convert_keys
from shared.string_utils import (
    clamp_month,
    clamp_subtitle,
    normalize_title,
    to_int,
    to_story_key,
)
from shared.types import Difficulty, Group, QuizDefinition, SourceSummary

OPENAI_API_KEY = SecretParam("OPENAI_API_KEY")

MODEL_ERRORS = (ModelRequestException, ModelInvalidResponseException)

initialize_app()


def _create_context() -> AppContext:
    return create_app_context(api_key=OPENAI_API_KEY.value)


def _require_uid(req: https_fn.CallableRequest) -> str:
    uid = req.auth.uid if req.auth else None
    if not uid:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.UNAUTHENTICATED,
            "Authentication required.",
        )
    return uid


def _str_field(data: dict, key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value).strip()


def _consume_rate_limit(ctx: AppContext, uid: str, limit: tuple) -> None:
    action_key, max_requests, window_seconds = limit
    try:
        throttling.try_consume(
            ctx.store, uid, action_key, max_requests, window_seconds, now=ctx.clock()
        )
    except throttling.RateLimitExceeded as e:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.RESOURCE_EXHAUSTED,
            "Rate limit exceeded. Please try again later.",
        ) from e


def _require_api_key(ctx: AppContext) -> None:
    if not ctx.model.has_api_key:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
            "OPENAI_API_KEY is not configured.",
        )


def _assert_membership(ctx: AppContext, group_id: str, uid: str) -> None:
    member = ctx.store.get(doc_path(GROUPS_COLLECTION, group_id, MEMBERS_COLLECTION, uid))
    if member is None:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.PERMISSION_DENIED,
            "You are not a member of this group.",
        )


def _load_group(ctx: AppContext, group_id: str) -> Group:
    data = ctx.store.get(doc_path(GROUPS_COLLECTION, group_id))
    if data is None:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.NOT_FOUND, "Group not found."
        )
    group_data = {key: value for key, value in data.items() if value is not None}
    if not isinstance(group_data.get("settings"), dict):
        group_data.pop("settings", None)
    return from_dict(
        data_class=Group,
        data=convert_keys(group_data, "camel_to_snake"),
        config=Config(check_types=False),
    )


def _assert_admin(group: Group, uid: str) -> None:
    if not group.effective_admin_uid or group.effective_admin_uid != uid:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.PERMISSION_DENIED,
            "Only admins can generate quiz content.",
        )


def _year_news_year(raw) -> int:
    year = to_int(raw)
    if year is None or year < MIN_YEAR_NEWS_YEAR or year > MAX_YEAR_NEWS_YEAR:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            f"year must be an integer between {MIN_YEAR_NEWS_YEAR} and {MAX_YEAR_NEWS_YEAR}.",
        )
    return year


@https_fn.on_call(
    timeout_sec=60, memory=options.MemoryOption.MB_512, secrets=[OPENAI_API_KEY]
)
def generate_weekly_quiz(req: https_fn.CallableRequest) -> dict:
    """
    Returns the group's quiz for a week, generating it when needed.

    Args:
        req (https_fn.CallableRequest): The request, containing groupId, weekId,
            and optionally year and forceRegenerate.

    Returns:
        A dictionary with the 20 quiz questions.
    """
    uid = _require_uid(req)
    return start_weekly_quiz(_create_context(), uid, req.data or {})


def start_weekly_quiz(ctx: AppContext, uid: str, data: dict) -> dict:
    group_id = _str_field(data, "groupId")
    week_id = _str_field(data, "weekId")
    requested_year = data.get("year")
    force_regenerate = bool(data.get("forceRegenerate") or False)

    if not group_id or not week_id:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "groupId and weekId are required.",
        )
    _assert_membership(ctx, group_id, uid)
    group = _load_group(ctx, group_id)

    # The group's current year wins over the requested one.
    year = to_int(group.current_year)
    if year is None:
        year = to_int(DEFAULT_YEAR if requested_year is None else requested_year)
    if year is None or year < MIN_QUIZ_YEAR or year > MAX_QUIZ_YEAR:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "year must be a valid integer year.",
        )

    difficulty = Difficulty.normalize(group.settings.quiz_difficulty)
    seed = quiz_generator.quiz_seed(group_id, week_id, year, difficulty)
    quiz_path = doc_path(
        GROUPS_COLLECTION,
        group_id,
        WEEKS_COLLECTION,
        week_id,
        QUIZ_COLLECTION,
        QUIZ_DEFINITION_DOC,
    )
    existing = ctx.store.get(quiz_path)

    if not force_regenerate:
        cached = quiz_generator.cached_questions_if_fresh(existing, year, difficulty)
        if cached is not None:
            logger.info(f"Returning existing quiz for {group_id}/{week_id} ({year}).")
            return {"questions": [question.to_dict() for question in cached]}
    else:
        _assert_admin(group, uid)
        _consume_rate_limit(ctx, uid, QUIZ_GENERATION_RATE_LIMIT)

    logger.info(
        f"Regenerating quiz for {group_id}/{week_id}: year={year}, "
        f"difficulty={difficulty}, forceRegenerate={force_regenerate}"
    )
    prior_questions = [
        question.question
        for question in quiz_generator.coerce_existing_questions(
            (existing or {}).get("questions")
        )
    ]
    questions, ai_count = quiz_generator.generate_quiz_questions(
        ctx.model, year, difficulty, seed, prior_questions
    )

    definition = QuizDefinition(
        year=year,
        difficulty=difficulty,
        seed=seed,
        questions=questions,
        source_summary=SourceSummary(
            ai_count=ai_count, fallback_count=len(questions) - ai_count
        ),
        week_id=week_id,
        generated_by=uid,
        model=QUIZ_MODEL_LABEL,
        created_at=SERVER_TIMESTAMP,
    )
    ctx.store.set(quiz_path, definition.to_dict(), merge=False)
    logger.info(f"Quiz written for {group_id}/{week_id}.")

    return {"questions": [question.to_dict() for question in questions]}


@https_fn.on_call(
    timeout_sec=300, memory=options.MemoryOption.MB_512, secrets=[OPENAI_API_KEY]
)
def generate_year_news_package(req: https_fn.CallableRequest) -> dict:
    """
    Generates the shared news package for a year, unless a recent one exists.

    Args:
        req (https_fn.CallableRequest): The request, containing the year.

    Returns:
        A dictionary with the status ("generated" or "already_exists") and year.
    """
    uid = _require_uid(req)
    return start_year_news_package(_create_context(), uid, req.data or {})


def start_year_news_package(ctx: AppContext, uid: str, data: dict) -> dict:
    year = _year_news_year(data.get("year"))
    _consume_rate_limit(ctx, uid, YEAR_NEWS_RATE_LIMIT)

    package_path = doc_path(YEAR_NEWS_COLLECTION, str(year))
    if year_news.is_package_fresh(ctx.store.get(package_path), ctx.clock()):
        return {"status": "already_exists", "year": year}

    _require_api_key(ctx)
    try:
        content = year_news.build_year_news(ctx.model, year)
    except MODEL_ERRORS as e:
        logger.error(f"Year news generation failed for {year}: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Year news generation failed. Please retry.",
        ) from e

    ctx.store.set(
        package_path,
        year_news.year_news_document(year, content, SERVER_TIMESTAMP),
        merge=False,
    )
    return {"status": "generated", "year": year}


@https_fn.on_call(
    timeout_sec=90, memory=options.MemoryOption.MB_512, secrets=[OPENAI_API_KEY]
)
def generate_year_news_article(req: https_fn.CallableRequest) -> dict:
    """
    Generates the long-form article behind a year news card.

    Args:
        req (https_fn.CallableRequest): The request, containing year, month,
            title, subtitle and optionally imageQuery.

    Returns:
        A dictionary with the status, year, storyKey and article.
    """
    uid = _require_uid(req)
    return start_year_news_article(_create_context(), uid, req.data or {})


def start_year_news_article(ctx: AppContext, uid: str, data: dict) -> dict:
    year = _year_news_year(data.get("year"))
    month = clamp_month(data.get("month"), 1)
    title = normalize_title(data.get("title"))
    subtitle = clamp_subtitle(data.get("subtitle"))
    image_query = normalize_title(data.get("imageQuery")) or title
    if not title or not subtitle:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "title and subtitle are required.",
        )
    _consume_rate_limit(ctx, uid, YEAR_NEWS_ARTICLE_RATE_LIMIT)

    story_key = to_story_key(year, month, title)
    article_path = doc_path(
        YEAR_NEWS_COLLECTION, str(year), STORIES_COLLECTION, story_key
    )
    existing = ctx.store.get(article_path)
    if existing is not None:
        return {
            "status": "already_exists",
            "year": year,
            "storyKey": story_key,
            "article": existing,
        }

    _require_api_key(ctx)
    try:
        article = articles.generate_article(
            ctx.model,
            ImageResolver(
                ctx.http, ctx.model, ctx.settings.lookup_timeout_seconds
            ),
            year,
            month,
            title,
            subtitle,
            image_query,
        )
    except (articles.ArticleGenerationError, *MODEL_ERRORS) as e:
        logger.error(f"Story generation failed for {story_key}: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Story generation failed. Please retry.",
        ) from e

    article_data = article.to_dict()
    ctx.store.set(article_path, {**article_data, "updatedAt": SERVER_TIMESTAMP})

    package_path = doc_path(YEAR_NEWS_COLLECTION, str(year))
    package_data = ctx.store.get(package_path)
    if package_data is not None:
        hero, by_month, changed = reconcile.update_package_with_article(
            package_data, article
        )
        if changed:
            ctx.store.set(
                package_path,
                {"hero": hero, "byMonth": by_month, "updatedAt": SERVER_TIMESTAMP},
                merge=True,
            )

    return {
        "status": "generated",
        "year": year,
        "storyKey": story_key,
        "article": article_data,
    }


@https_fn.on_call(
    timeout_sec=30, memory=options.MemoryOption.MB_256, secrets=[OPENAI_API_KEY]
)
def nostalgia_chat(req: https_fn.CallableRequest) -> dict:
    """
    Replies to a group member's chat message about their nostalgia year.

    Args:
        req (https_fn.CallableRequest): The request, containing groupId, message
            and an optional context with year and history.

    Returns:
        A dictionary with the reply.
    """
    uid = _require_uid(req)
    return start_nostalgia_chat(_create_context(), uid, req.data or {})


def start_nostalgia_chat(ctx: AppContext, uid: str, data: dict) -> dict:
    group_id = _str_field(data, "groupId")
    message = _str_field(data, "message")
    if not group_id or not message:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "groupId and message are required.",
        )
    if len(message) > MAX_CHAT_MESSAGE_LENGTH:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT, "Message too long."
        )

    _assert_membership(ctx, group_id, uid)
    _consume_rate_limit(ctx, uid, CHAT_RATE_LIMIT)

    try:
        reply = chat.generate_chat_reply(ctx.model, message, data.get("context"))
    except MODEL_ERRORS as e:
        logger.error(f"Chat reply failed for group {group_id}: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL, "AI service unavailable."
        ) from e
    return {"reply": reply}
