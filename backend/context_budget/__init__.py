from .assembler import CHAT_PARAMS, SEARCH_PARAMS, UPLOAD_PARAMS, RequestAssembler
from .client import (
    ModelClient,
    ModelClientError,
    PerplexityClient,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
)
from .models import (
    SUMMARY_PREFIX,
    Budget,
    Completion,
    CompletionParams,
    CompletionRequest,
    ConversationTurn,
    DocumentFit,
    PlanResult,
    SummaryOutcome,
)
from .planner import ContextBudgetPlanner
from .summarizer import Summarizer
from .tokens import estimate_tokens

__all__ = [
    "CHAT_PARAMS",
    "SEARCH_PARAMS",
    "SUMMARY_PREFIX",
    "UPLOAD_PARAMS",
    "Budget",
    "Completion",
    "CompletionParams",
    "CompletionRequest",
    "ContextBudgetPlanner",
    "ConversationTurn",
    "DocumentFit",
    "ModelClient",
    "ModelClientError",
    "PerplexityClient",
    "PlanResult",
    "ProviderNotConfiguredError",
    "ProviderTimeoutError",
    "RequestAssembler",
    "Summarizer",
    "SummaryOutcome",
    "estimate_tokens",
]
