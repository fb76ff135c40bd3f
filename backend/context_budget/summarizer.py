from __future__ import annotations

import asyncio
from typing import Sequence

from .client import ModelClient
from .models import CompletionParams, CompletionRequest, ConversationTurn, SummaryOutcome


HISTORY_SUMMARY_INSTRUCTION = (
    "You are a medical AI assistant. Summarize the following conversation history concisely "
    "while preserving all important medical information, patient details, and key discussion points. "
    "Keep the summary comprehensive but compact."
)
DOCUMENT_SUMMARY_INSTRUCTION = (
    "You are a medical AI assistant. Create a comprehensive but concise summary of the following "
    "patient medical information. Preserve all critical medical details, diagnoses, medications, "
    "procedures, and key findings while reducing the overall length."
)


def render_transcript(turns: Sequence[ConversationTurn]) -> str:
    return "\n\n".join(turn.transcript_line() for turn in turns)


class Summarizer:
    """Best-effort compaction of conversation history and source documents.

    Neither method raises: a failed or empty model call yields a fallback
    outcome that keeps the original content instead of dropping it.
    """

    def __init__(
        self,
        client: ModelClient,
        *,
        model: str = "sonar-pro",
        timeout_seconds: float = 30.0,
        history_max_tokens: int = 500,
        document_max_tokens: int = 1500,
        fallback_turns: int = 3,
    ) -> None:
        if fallback_turns < 1:
            raise ValueError("fallback_turns must be at least 1.")
        self.client = client
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.history_max_tokens = history_max_tokens
        self.document_max_tokens = document_max_tokens
        self.fallback_turns = fallback_turns

    async def summarize_history(self, turns: Sequence[ConversationTurn]) -> SummaryOutcome:
        transcript = render_transcript(turns)
        try:
            text = await self._summarize(
                instruction=HISTORY_SUMMARY_INSTRUCTION,
                prompt=f"Please summarize this conversation history:\n\n{transcript}",
                max_tokens=self.history_max_tokens,
            )
        except Exception as exc:
            print(f"history summarization failed, keeping recent turns: {exc!r}")  # noqa: T201
            recent = render_transcript(list(turns)[-self.fallback_turns :])
            return SummaryOutcome(text=recent, fallback_applied=True, error=str(exc) or type(exc).__name__)
        return SummaryOutcome(text=text)

    async def summarize_document(self, text: str) -> SummaryOutcome:
        try:
            summary = await self._summarize(
                instruction=DOCUMENT_SUMMARY_INSTRUCTION,
                prompt=f"Please summarize this patient medical information:\n\n{text}",
                max_tokens=self.document_max_tokens,
            )
        except Exception as exc:
            print(f"document summarization failed, keeping original text: {exc!r}")  # noqa: T201
            return SummaryOutcome(text=text, fallback_applied=True, error=str(exc) or type(exc).__name__)
        return SummaryOutcome(text=summary)

    async def _summarize(self, *, instruction: str, prompt: str, max_tokens: int) -> str:
        request = CompletionRequest(
            messages=[
                {"role": "system", "content": instruction},
                {"role": "user", "content": prompt},
            ],
            params=CompletionParams(model=self.model, temperature=0.1, max_tokens=max_tokens),
        )
        completion = await asyncio.wait_for(self.client.complete(request), timeout=self.timeout_seconds)
        text = (completion.content or "").strip()
        if not text:
            raise ValueError("Model provider returned an empty summary.")
        return text
