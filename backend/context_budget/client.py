from __future__ import annotations

from typing import Any, Protocol

import httpx

from .models import Completion, CompletionRequest


DEFAULT_BASE_URL = "https://api.perplexity.ai"


class ModelClientError(RuntimeError):
    pass


class ProviderNotConfiguredError(ModelClientError):
    pass


class ProviderTimeoutError(ModelClientError):
    pass


class ModelClient(Protocol):
    async def complete(self, request: CompletionRequest) -> Completion: ...


def _non_blank(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def provider_error_message(response: httpx.Response) -> str:
    """Best human-readable error from a failed provider response.

    Prefers OpenAI-style ``{"error": {"message": ...}}``, then a top-level
    ``message``, then the raw body.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        nested = error.get("message") if isinstance(error, dict) else None
        found = _non_blank(nested) or _non_blank(payload.get("message"))
        if found:
            return found
    return _non_blank(response.text) or f"HTTP {response.status_code}"


def coerce_completion_text(response_json: dict[str, Any]) -> str:
    choices = response_json.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, list):
        # Content-part form: [{"type": "text", "text": ...}, ...]
        return "\n".join(
            part["text"] for part in content if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
    return content if isinstance(content, str) else ""


def _coerce_usage(raw: Any) -> dict[str, int]:
    usage = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
    if not isinstance(raw, dict):
        return usage
    for key in usage:
        try:
            usage[key] = int(raw.get(key) or 0)
        except (TypeError, ValueError):
            continue
    return usage


def _coerce_search_results(raw: Any) -> list[dict[str, str]]:
    if not isinstance(raw, list):
        return []
    results: list[dict[str, str]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        url = str(item.get("url") or "").strip()
        if not url:
            continue
        results.append(
            {
                "title": str(item.get("title") or "").strip(),
                "url": url,
                "snippet": str(item.get("snippet") or "").strip(),
            }
        )
    return results


def parse_completion(response_json: dict[str, Any], *, fallback_model: str) -> Completion:
    if not isinstance(response_json.get("choices"), list):
        raise ModelClientError("Model provider returned a response without choices.")
    return Completion(
        content=coerce_completion_text(response_json),
        model=str(response_json.get("model") or fallback_model),
        usage=_coerce_usage(response_json.get("usage")),
        search_results=_coerce_search_results(response_json.get("search_results")),
    )


class PerplexityClient:
    """OpenAI-compatible chat-completions client for the Perplexity API."""

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, request: CompletionRequest) -> Completion:
        if not self.api_key:
            raise ProviderNotConfiguredError("Model provider API key is not configured.")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds, connect=8.0),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=request.as_payload(),
                )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError("Model provider timed out.") from exc
        except httpx.HTTPError as exc:
            raise ModelClientError(f"Failed to reach model provider: {exc}") from exc

        if response.status_code >= 400:
            raise ModelClientError(provider_error_message(response))
        try:
            payload = response.json()
        except ValueError as exc:
            raise ModelClientError("Model provider returned invalid JSON.") from exc
        if not isinstance(payload, dict):
            raise ModelClientError("Model provider returned invalid JSON.")
        return parse_completion(payload, fallback_model=request.params.model)
