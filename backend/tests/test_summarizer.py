from __future__ import annotations

import asyncio

import pytest

from context_budget import Completion, ConversationTurn, Summarizer
from context_budget.summarizer import DOCUMENT_SUMMARY_INSTRUCTION, HISTORY_SUMMARY_INSTRUCTION
from model_stubs import StubModelClient


HISTORY = [
    ConversationTurn(role="user", content="What is her latest HbA1c?"),
    ConversationTurn(role="assistant", content="HbA1c was 7.9% on 2024-02-03."),
    ConversationTurn(role="user", content="Is she on metformin?"),
    ConversationTurn(role="assistant", content="Yes, metformin 1000 mg twice daily."),
]


class _EmptyClient:
    async def complete(self, request):
        return Completion(content="   ", model="sonar-pro")


class _HangingClient:
    async def complete(self, request):
        await asyncio.sleep(5)
        return Completion(content="too late", model="sonar-pro")


@pytest.mark.asyncio
async def test_history_summary_uses_low_temperature_and_bounded_output():
    stub = StubModelClient(summary="  Discussed HbA1c and metformin.  ")

    outcome = await Summarizer(stub).summarize_history(HISTORY)

    assert outcome.ok
    assert outcome.text == "Discussed HbA1c and metformin."
    request = stub.requests[0]
    assert request.messages[0] == {"role": "system", "content": HISTORY_SUMMARY_INSTRUCTION}
    assert request.messages[1]["content"].startswith("Please summarize this conversation history:")
    assert "user: Is she on metformin?" in request.messages[1]["content"]
    assert request.params.temperature == 0.1
    assert request.params.max_tokens == 500
    assert "search_mode" not in request.as_payload()


@pytest.mark.asyncio
async def test_document_summary_allows_longer_output_than_history_summary():
    stub = StubModelClient(summary="Diagnoses: hypertension.")

    outcome = await Summarizer(stub).summarize_document("Full patient record text")

    assert outcome.ok
    assert outcome.text == "Diagnoses: hypertension."
    request = stub.requests[0]
    assert request.messages[0]["content"] == DOCUMENT_SUMMARY_INSTRUCTION
    assert request.messages[1]["content"].endswith("Full patient record text")
    assert request.params.max_tokens == 1500
    assert request.params.max_tokens > Summarizer(stub).history_max_tokens


@pytest.mark.asyncio
async def test_history_fallback_returns_last_three_turns_verbatim():
    stub = StubModelClient(fail_summaries=True)

    outcome = await Summarizer(stub).summarize_history(HISTORY)

    assert outcome.fallback_applied is True
    assert outcome.error == "summary provider unavailable"
    assert outcome.text == (
        "assistant: HbA1c was 7.9% on 2024-02-03.\n\n"
        "user: Is she on metformin?\n\n"
        "assistant: Yes, metformin 1000 mg twice daily."
    )
    assert "latest HbA1c" not in outcome.text


@pytest.mark.asyncio
async def test_document_fallback_returns_original_text_unchanged():
    stub = StubModelClient(fail_summaries=True)
    document = "Medications: lisinopril 20 mg daily.\nAllergies: penicillin."

    outcome = await Summarizer(stub).summarize_document(document)

    assert outcome.fallback_applied is True
    assert outcome.text == document


@pytest.mark.asyncio
async def test_empty_model_output_is_treated_as_failure():
    summarizer = Summarizer(_EmptyClient())

    history_outcome = await summarizer.summarize_history(HISTORY)
    document_outcome = await summarizer.summarize_document("record")

    assert history_outcome.fallback_applied is True
    assert history_outcome.text
    assert document_outcome.fallback_applied is True
    assert document_outcome.text == "record"


@pytest.mark.asyncio
async def test_slow_summary_call_times_out_into_fallback():
    summarizer = Summarizer(_HangingClient(), timeout_seconds=0.05)

    outcome = await summarizer.summarize_document("record")

    assert outcome.fallback_applied is True
    assert outcome.text == "record"
    assert outcome.error


@pytest.mark.parametrize("fallback_turns", [0, -1])
def test_fallback_must_keep_at_least_one_turn(fallback_turns):
    with pytest.raises(ValueError):
        Summarizer(StubModelClient(), fallback_turns=fallback_turns)


@pytest.mark.asyncio
async def test_history_fallback_with_short_history_uses_all_turns():
    stub = StubModelClient(fail_summaries=True)

    outcome = await Summarizer(stub).summarize_history(HISTORY[:2])

    assert outcome.text == "user: What is her latest HbA1c?\n\nassistant: HbA1c was 7.9% on 2024-02-03."
