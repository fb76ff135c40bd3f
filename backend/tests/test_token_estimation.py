from __future__ import annotations

import math

import pytest

from context_budget import ConversationTurn, estimate_tokens
from context_budget.tokens import estimate_history_tokens


def test_empty_text_has_no_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0


@pytest.mark.parametrize("length", [1, 3, 4, 5, 50, 199, 200, 4001])
def test_estimate_is_character_length_over_four_rounded_up(length):
    text = "x" * length
    assert estimate_tokens(text) == math.ceil(length / 4)


def test_estimate_counts_whitespace_and_unicode_characters():
    assert estimate_tokens("a b\n") == 1
    assert estimate_tokens("胸痛胸痛胸") == 2


def test_history_estimate_sums_turn_contents():
    turns = [
        ConversationTurn(role="user", content="x" * 10),
        ConversationTurn(role="assistant", content="y" * 8),
    ]
    assert estimate_history_tokens(turns) == 3 + 2
    assert estimate_history_tokens([]) == 0
