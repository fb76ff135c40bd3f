from __future__ import annotations

import asyncio
import dataclasses
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from context_budget import (
    CHAT_PARAMS,
    SEARCH_PARAMS,
    UPLOAD_PARAMS,
    Budget,
    Completion,
    CompletionParams,
    CompletionRequest,
    ContextBudgetPlanner,
    ConversationTurn,
    DocumentFit,
    ModelClient,
    ModelClientError,
    PerplexityClient,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    RequestAssembler,
    Summarizer,
)
from records import (
    InvalidRecordKeyError,
    PatientRecordStore,
    RecordNotFoundError,
    RecordReadError,
    extract_upload_text,
    is_supported_upload,
)

_ENV_LINE_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$")


def _parse_env_lines(lines: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in lines:
        if line.lstrip().startswith("#"):
            continue
        match = _ENV_LINE_RE.match(line)
        if not match:
            continue
        key, value = match.groups()
        if len(value) >= 2 and value[0] in {"'", '"'} and value.endswith(value[0]):
            value = value[1:-1]
        values[key] = value
    return values


def _bootstrap_local_env() -> None:
    """Load ``.env`` files for local runs without overriding the real environment."""
    repo_root = Path(__file__).resolve().parents[1]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        try:
            lines = candidate.read_text(encoding="utf-8").splitlines()
        except OSError:
            continue
        for key, value in _parse_env_lines(lines).items():
            os.environ.setdefault(key, value)


_bootstrap_local_env()

DEFAULT_SYSTEM_PROMPT = "Be precise and concise."
DEFAULT_UPLOAD_SYSTEM_PROMPT = "You are an expert analyst. Summarize the key findings from the provided document."
_DEFAULT_RECORDS_DIR = Path(__file__).resolve().parent / "sample-data"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def _model_name() -> str:
    return (os.getenv("PERPLEXITY_MODEL") or "sonar-pro").strip()


def _chat_timeout_seconds() -> float:
    return float(os.getenv("MODEL_CHAT_TIMEOUT_SECONDS", "60"))


def _summary_timeout_seconds() -> float:
    return float(os.getenv("MODEL_SUMMARY_TIMEOUT_SECONDS", "30"))


def _max_document_tokens() -> int:
    return int(os.getenv("MAX_DOCUMENT_TOKENS", "8000"))


def _max_upload_bytes() -> int:
    return int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))


def _budget_from_env() -> Budget:
    return Budget(
        max_total_tokens=int(os.getenv("CONTEXT_MAX_TOTAL_TOKENS", "12000")),
        reserved_for_response=int(os.getenv("CONTEXT_RESERVED_FOR_RESPONSE", "1000")),
        history_fraction=float(os.getenv("CONTEXT_HISTORY_FRACTION", "0.7")),
    )


def _call_params(preset: CompletionParams) -> CompletionParams:
    return dataclasses.replace(preset, model=_model_name())


class ChatTurnPayload(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime | None = None


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    patient_context: str | None = Field(default=None, alias="patientContext")
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    chat_history: list[ChatTurnPayload] | None = Field(default=None, alias="chatHistory")


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    search_term: str | None = Field(default=None, alias="searchTerm")
    system_prompt: str | None = Field(default=None, alias="systemPrompt")


class DocumentChatApp:
    def __init__(self) -> None:
        self.records = PatientRecordStore(os.getenv("PATIENT_RECORDS_DIR", str(_DEFAULT_RECORDS_DIR)))
        self.bind_client(
            PerplexityClient(
                os.getenv("PERPLEXITY_API_KEY"),
                base_url=os.getenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai"),
                timeout_seconds=_chat_timeout_seconds(),
            )
        )

    def bind_client(self, client: ModelClient) -> None:
        self.client = client
        self.summarizer = Summarizer(client, model=_model_name(), timeout_seconds=_summary_timeout_seconds())
        self.planner = ContextBudgetPlanner(
            self.summarizer,
            _budget_from_env(),
            enable_compaction=_env_flag("CONTEXT_COMPACTION_ENABLED", "true"),
        )


container = DocumentChatApp()
app = FastAPI(title="Patient Document Chat API")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _prompt_or_default(system_prompt: str | None, default: str) -> str:
    return (system_prompt or "").strip() or default


def _chat_instructions(system_prompt: str | None) -> str:
    return (
        f"{_prompt_or_default(system_prompt, DEFAULT_SYSTEM_PROMPT)}\n\n"
        "You are a medical AI assistant helping with questions about a specific patient. "
        "Answer questions about this patient based on the medical information provided below. "
        "If asked about information not in the patient record, clearly state that the information "
        "is not available in the current patient data.\n\n"
        "Here is the patient's medical information:"
    )


def _document_metadata(fit: DocumentFit) -> dict[str, Any]:
    return {
        "originalTokens": fit.original_tokens,
        "processedTokens": fit.processed_tokens,
        "summarized": fit.summarized,
        "summaryFallback": fit.fallback_applied,
    }


async def _complete(request: CompletionRequest) -> Completion:
    try:
        return await asyncio.wait_for(container.client.complete(request), timeout=_chat_timeout_seconds())
    except ProviderNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except (ProviderTimeoutError, asyncio.TimeoutError) as exc:
        print(f"completion call timed out: {exc!r}")  # noqa: T201
        raise HTTPException(status_code=504, detail="Model provider timed out.") from exc
    except ModelClientError as exc:
        print(f"completion call failed: {exc}")  # noqa: T201
        raise HTTPException(status_code=502, detail=str(exc) or "Model provider request failed.") from exc


async def _single_document_completion(
    *,
    system_prompt: str,
    user_message: str,
    params: CompletionParams,
) -> Completion:
    plan = await container.planner.plan(system_prompt, "")
    request = RequestAssembler(_call_params(params)).build(plan, user_message)
    return await _complete(request)


async def _read_upload_bytes(upload: UploadFile, *, max_bytes: int, too_large_detail: str) -> bytes:
    raw = await upload.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise HTTPException(status_code=413, detail=too_large_detail)
    if not raw:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    return raw


@app.get("/health")
def health():
    return {
        "status": "ok",
        "model": _model_name(),
        "provider_configured": bool(getattr(container.client, "configured", True)),
    }


@app.post("/api/search")
async def search_patient_record(payload: SearchRequest):
    search_term = (payload.search_term or "").strip()
    if not search_term:
        raise HTTPException(status_code=400, detail="Search term is required")

    try:
        file_content = container.records.lookup(search_term)
    except InvalidRecordKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RecordReadError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    fit = await container.planner.fit_document(file_content, max_tokens=_max_document_tokens())
    completion = await _single_document_completion(
        system_prompt=_prompt_or_default(payload.system_prompt, DEFAULT_SYSTEM_PROMPT),
        user_message=f"generate a Patient summary based on the following information: {fit.text}",
        params=SEARCH_PARAMS,
    )
    return {
        **completion.as_response(),
        "fileContent": fit.text,
        "metadata": _document_metadata(fit),
    }


@app.post("/api/files")
async def analyze_uploaded_file(
    file: UploadFile | None = File(default=None),
    system_prompt: str | None = Form(default=None, alias="systemPrompt"),
):
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    file_name = (file.filename or "").strip() or "document-upload"
    mime_type = (file.content_type or "").lower().strip()
    if not is_supported_upload(file_name, mime_type):
        raise HTTPException(status_code=415, detail="Unsupported document format.")

    max_bytes = _max_upload_bytes()
    raw = await _read_upload_bytes(
        file,
        max_bytes=max_bytes,
        too_large_detail=f"Document file exceeds {max_bytes // (1024 * 1024)}MB limit.",
    )
    extracted = extract_upload_text(file_name, mime_type, raw)
    if not extracted.text:
        raise HTTPException(status_code=422, detail="Unable to extract readable content from the uploaded file.")

    fit = await container.planner.fit_document(extracted.text, max_tokens=_max_document_tokens())
    completion = await _single_document_completion(
        system_prompt=_prompt_or_default(system_prompt, DEFAULT_UPLOAD_SYSTEM_PROMPT),
        user_message=f"Summarize and analyze the following document.\n\n{fit.text}",
        params=UPLOAD_PARAMS,
    )
    return {
        **completion.as_response(),
        "search_results": [],
        "fileContent": extracted.text,
        "metadata": {**_document_metadata(fit), "extractionMethod": extracted.method},
    }


@app.post("/api/chat")
async def chat(payload: ChatRequest):
    message = (payload.message or "").strip()
    patient_context = (payload.patient_context or "").strip()
    if not message or not patient_context:
        raise HTTPException(status_code=400, detail="Message and patient context are required")

    history = [
        ConversationTurn(role=turn.role, content=turn.content, timestamp=turn.timestamp)
        for turn in payload.chat_history or []
    ]
    fit = await container.planner.fit_document(patient_context, max_tokens=_max_document_tokens())
    plan = await container.planner.plan(_chat_instructions(payload.system_prompt), fit.text, history)
    request = RequestAssembler(_call_params(CHAT_PARAMS)).build(plan, message)
    completion = await _complete(request)
    return {
        **completion.as_response(),
        "metadata": {
            "summarized": plan.was_summarized,
            "estimatedInputTokens": plan.estimated_input_tokens,
            "summaryFallback": plan.summary_fallback,
            "documentSummarized": fit.summarized,
        },
    }
