from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, List, Literal

from ro_analytics.rag.errors import InputError

logger = logging.getLogger(__name__)

MAX_HISTORY_MESSAGES = 12
MAX_MESSAGE_CHARS = 4000

Role = Literal["user", "assistant", "system"]
ALLOWED_ROLES = ("user", "assistant", "system")


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    text: str


def normalize_conversation(
    raw_messages: Iterable[Any],
    max_messages: int = MAX_HISTORY_MESSAGES,
    max_chars: int = MAX_MESSAGE_CHARS,
) -> List[ChatMessage]:
    """
    Keep well-formed messages only, trimmed and capped, and at most the last
    ``max_messages`` of them in their original order.
    """
    kept: List[ChatMessage] = []
    dropped = 0
    for msg in raw_messages:
        if not isinstance(msg, Mapping):
            dropped += 1
            continue
        role, content = msg.get("role"), msg.get("content")
        if role not in ALLOWED_ROLES or not isinstance(content, str) or not content.strip():
            dropped += 1
            continue
        kept.append(ChatMessage(role=role, text=content.strip()[:max_chars]))

    if dropped:
        logger.debug("Dropped %s malformed conversation entries", dropped)
    return kept[-max_messages:]


def require_user_turn(messages: List[ChatMessage]) -> None:
    """Fail fast, before any collaborator is called, unless the user spoke last."""
    if not messages:
        raise InputError("Envie ao menos uma mensagem", label="Conversa vazia")
    if messages[-1].role != "user":
        raise InputError("A última mensagem precisa ser do usuário", label="Conversa inválida")
