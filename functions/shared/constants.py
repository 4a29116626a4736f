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

# Collections
GROUPS_COLLECTION = "groups"
MEMBERS_COLLECTION = "members"
WEEKS_COLLECTION = "weeks"
QUIZ_COLLECTION = "quiz"
QUIZ_DEFINITION_DOC = "definition"
YEAR_NEWS_COLLECTION = "year_news"
STORIES_COLLECTION = "stories"
RATE_LIMITS_COLLECTION = "aiRateLimits"

# Request validation
MAX_CHAT_MESSAGE_LENGTH = 800
MAX_CHAT_HISTORY_ENTRIES = 8
MAX_CHAT_HISTORY_ENTRY_LENGTH = 400
MAX_CHAT_REPLY_LENGTH = 1500
DEFAULT_YEAR = 1990
MIN_QUIZ_YEAR = 1900
MAX_QUIZ_YEAR = 2100
MIN_YEAR_NEWS_YEAR = 1950
MAX_YEAR_NEWS_YEAR = 2010

# Text
MAX_SUBTITLE_LENGTH = 220
MAX_SLUG_LENGTH = 80

# Quiz
QUIZ_QUESTION_COUNT = 20
QUIZ_OPTION_COUNT = 4
QUIZ_MAX_ROUNDS = 5
QUIZ_FIRST_ROUND_REQUEST = 35
QUIZ_RETRY_ROUND_REQUEST = 20
QUIZ_MIN_NORMALIZED_CAP = 40
QUIZ_AVOID_LIST_LIMIT = 40
QUIZ_MODEL_LABEL = "gpt-4o-mini-or-fallback"

# Year news
YEAR_NEWS_MONTHS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)
YEAR_NEWS_HERO_COUNT = 3
YEAR_NEWS_ITEMS_PER_MONTH = 5
YEAR_NEWS_TICKER_COUNT = 15
YEAR_NEWS_MONTH_CHUNKS = ((1, 4), (5, 8), (9, 12))
YEAR_NEWS_FRESH_SECONDS = 30 * 24 * 60 * 60
YEAR_NEWS_SOURCE_LABEL = "AI Historical Digest"
ARTICLE_PARAGRAPH_COUNT = 5
ARTICLE_MIN_PARAGRAPHS = 3
FALLBACK_IMAGE_URL = "https://upload.wikimedia.org/wikipedia/commons/thumb/a/ac/No_image_available.svg/640px-No_image_available.svg.png"

# Rate limits: (key, max requests, window seconds)
DAY_SECONDS = 24 * 60 * 60
QUIZ_GENERATION_RATE_LIMIT = ("quiz_generation_daily", 25, DAY_SECONDS)
YEAR_NEWS_RATE_LIMIT = ("year_news_generation_daily", 40, DAY_SECONDS)
YEAR_NEWS_ARTICLE_RATE_LIMIT = ("year_news_article_daily", 100, DAY_SECONDS)
CHAT_RATE_LIMIT = ("chat_minute", 20, 60)
