from __future__ import annotations

import math
from typing import Iterable

from .models import ConversationTurn


CHARS_PER_TOKEN = 4


def estimate_tokens(text: str | None) -> int:
    """Approximate token count: one token per four characters, rounded up.

    Coarse by intent; callers keep a safety margin instead of relying on it.
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_history_tokens(turns: Iterable[ConversationTurn]) -> int:
    return sum(estimate_tokens(turn.content) for turn in turns)
