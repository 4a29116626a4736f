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

"""Generates nostalgia chat replies from the caller's message and recent history."""

from typing import Any, List

from models import prompts
from models.openai_client import ModelClient, ModelInvalidResponseException
from shared.constants import (
    DEFAULT_YEAR,
    MAX_CHAT_HISTORY_ENTRIES,
    MAX_CHAT_HISTORY_ENTRY_LENGTH,
    MAX_CHAT_REPLY_LENGTH,
)
from shared.string_utils import to_int
from shared.types import ChatMessage

CHAT_TEMPERATURE = 0.7
CHAT_MAX_TOKENS = 300


def chat_year(context: Any) -> int:
    """The year the chat is about, defaulting to 1990."""
    raw = context.get("year") if isinstance(context, dict) else None
    year = to_int(raw)
    return DEFAULT_YEAR if year is None else year


def history_messages(history: Any) -> List[ChatMessage]:
    """
    Converts raw client history into chat messages.

    Only the last 8 entries are used. Entries are attributed to the assistant
    only when they say so; content is cut to 400 characters and empty
    entries are dropped.
    """
    if not isinstance(history, list):
        return []
    messages = []
    for entry in history[-MAX_CHAT_HISTORY_ENTRIES:]:
        entry = entry if isinstance(entry, dict) else {}
        role = "assistant" if entry.get("role") == "assistant" else "user"
        content = entry.get("content")
        content = "" if content is None else str(content)
        content = content[:MAX_CHAT_HISTORY_ENTRY_LENGTH]
        if content:
            messages.append(ChatMessage(role=role, content=content))
    return messages


def build_chat_messages(message: str, context: Any) -> List[ChatMessage]:
    history = context.get("history") if isinstance(context, dict) else None
    return [
        ChatMessage(role="system", content=prompts.make_chat_system_prompt(chat_year(context))),
        *history_messages(history),
        ChatMessage(role="user", content=message),
    ]


def generate_chat_reply(model: ModelClient, message: str, context: Any) -> str:
    """
    Returns the assistant reply, clamped to 1500 characters.

    Raises:
        ModelRequestException: If the model could not be reached.
        ModelInvalidResponseException: If the model replied with no text.
    """
    reply = model.chat(
        build_chat_messages(message, context),
        temperature=CHAT_TEMPERATURE,
        max_tokens=CHAT_MAX_TOKENS,
    )
    if not reply:
        raise ModelInvalidResponseException("AI returned an empty response.")
    return reply[:MAX_CHAT_REPLY_LENGTH]
