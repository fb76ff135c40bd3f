from __future__ import annotations

from typing import Sequence

from .models import SUMMARY_PREFIX, Budget, ConversationTurn, DocumentFit, PlanResult
from .summarizer import Summarizer
from .tokens import estimate_history_tokens, estimate_tokens


RECENT_TURNS_KEPT = 2


def compose_base_message(system_prompt: str, document_context: str) -> str:
    parts = [part for part in (system_prompt, document_context) if part]
    return "\n\n".join(parts)


class ContextBudgetPlanner:
    """Fits system prompt, document context and history into a token budget.

    History is compacted through the summarizer only when it exceeds
    ``history_fraction`` of what the fixed prompt leaves over. Oversized
    documents are handled separately by ``fit_document`` before planning.
    """

    def __init__(
        self,
        summarizer: Summarizer,
        budget: Budget | None = None,
        *,
        enable_compaction: bool = True,
    ) -> None:
        self.summarizer = summarizer
        self.budget = budget or Budget()
        self.enable_compaction = enable_compaction

    async def plan(
        self,
        system_prompt: str,
        document_context: str,
        history: Sequence[ConversationTurn] = (),
        *,
        budget: Budget | None = None,
    ) -> PlanResult:
        active_budget = budget or self.budget
        turns = tuple(history)
        base_message = compose_base_message(system_prompt, document_context)
        base_tokens = estimate_tokens(system_prompt) + estimate_tokens(document_context)
        available_for_history = active_budget.input_tokens - base_tokens
        history_tokens = estimate_history_tokens(turns)

        over_budget = history_tokens > available_for_history * active_budget.history_fraction
        if not (self.enable_compaction and turns and over_budget):
            return PlanResult(
                system_messages=(base_message,),
                history_messages=turns,
                was_summarized=False,
                estimated_input_tokens=base_tokens,
            )

        print(  # noqa: T201
            f"history too long ({history_tokens} tokens, {available_for_history} available), summarizing"
        )
        outcome = await self.summarizer.summarize_history(turns)
        return PlanResult(
            system_messages=(base_message, f"{SUMMARY_PREFIX}{outcome.text}"),
            history_messages=turns[-RECENT_TURNS_KEPT:],
            was_summarized=True,
            estimated_input_tokens=base_tokens,
            summary_fallback=outcome.fallback_applied,
        )

    async def fit_document(self, text: str, *, max_tokens: int) -> DocumentFit:
        original_tokens = estimate_tokens(text)
        if not self.enable_compaction or original_tokens <= max_tokens:
            return DocumentFit(text=text, original_tokens=original_tokens, processed_tokens=original_tokens)

        print(f"document too long ({original_tokens} tokens, limit {max_tokens}), summarizing")  # noqa: T201
        outcome = await self.summarizer.summarize_document(text)
        return DocumentFit(
            text=outcome.text,
            original_tokens=original_tokens,
            processed_tokens=estimate_tokens(outcome.text),
            summarized=True,
            fallback_applied=outcome.fallback_applied,
        )
