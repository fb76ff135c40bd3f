from __future__ import annotations

from .models import CompletionParams, CompletionRequest, PlanResult


CHAT_PARAMS = CompletionParams(
    temperature=0.2,
    top_p=0.9,
    max_tokens=1000,
    presence_penalty=0,
    frequency_penalty=0,
    search_mode="web",
    search_domain_filter=("ncbi.nlm.nih.gov", "mayoclinic.org", "webmd.com", "medlineplus.gov"),
    search_recency_filter="month",
)
SEARCH_PARAMS = CompletionParams(
    temperature=0.2,
    top_p=0.9,
    max_tokens=1000,
    presence_penalty=0,
    frequency_penalty=0,
    search_mode="web",
    search_domain_filter=("government.gov", "nature.com", "science.org"),
    search_recency_filter="month",
)
UPLOAD_PARAMS = CompletionParams(temperature=0.2, max_tokens=4000)


class RequestAssembler:
    def __init__(self, params: CompletionParams) -> None:
        self.params = params

    def build(self, plan: PlanResult, current_message: str) -> CompletionRequest:
        messages = [{"role": "system", "content": text} for text in plan.system_messages]
        messages.extend(turn.as_message() for turn in plan.history_messages)
        messages.append({"role": "user", "content": current_message})
        return CompletionRequest(messages=messages, params=self.params)
