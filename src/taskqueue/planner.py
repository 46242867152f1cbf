"""Ask an LLM provider for a draft project plan and task list.

This is a collaborator of project creation only; the lifecycle rules never
call it.  Every failure is raised as a :class:`ProviderError` (or
``FileSystemError`` for attachments, raised by the caller) so it stays out of
the lifecycle part of the error taxonomy.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .constants import LLM_TIMEOUT_SECONDS
from .errors import ErrorCode, ProviderError


OPENAI_BASE_URL = "https://api.openai.com/v1"
DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"
GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

SUPPORTED_PROVIDERS = ("openai", "google", "deepseek")


class PlannedTask(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    toolRecommendations: Optional[str] = None
    ruleRecommendations: Optional[str] = None


class PlanOutput(BaseModel):
    projectPlan: str = ""
    tasks: list[PlannedTask]


def build_prompt(prompt: str, attachments: list[str]) -> str:
    """Wrap the user prompt, output schema and attachments in XML-style tags."""
    schema = json.dumps(PlanOutput.model_json_schema(), indent=2)
    text = f"<prompt>{prompt}</prompt>"
    text += (
        "\n<outputFormat>Return your output as JSON formatted according to the "
        f"following schema: {schema}</outputFormat>"
    )
    for content in attachments:
        text += f"\n<attachment>{content}</attachment>"
    return text


def _openai_compatible_request(
    base_url: str, model: str, api_key: str, prompt: str
) -> tuple[str, dict[str, str], dict[str, Any]]:
    url = f"{base_url}/chat/completions"
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    payload = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "response_format": {"type": "json_object"},
    }
    return url, headers, payload


def _google_request(model: str, api_key: str, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
    url = f"{GOOGLE_BASE_URL}/models/{model}:generateContent"
    headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {"responseMimeType": "application/json"},
    }
    return url, headers, payload


def _extract_text(provider: str, body: dict[str, Any]) -> str:
    if provider == "google":
        candidates = body.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(str(p.get("text", "")) for p in parts)
    choices = body.get("choices") or []
    if not choices:
        return ""
    return str((choices[0].get("message") or {}).get("content") or "")


def _post_json(
    provider: str, url: str, headers: dict[str, str], payload: dict[str, Any], timeout: float
) -> tuple[int, str]:
    """POST *payload* and return ``(status, body)``; HTTP errors are returned, not raised."""
    request = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers=headers,
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as resp:
            return resp.status, resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
        return exc.code, body
    except urllib.error.URLError as exc:
        raise ProviderError(
            f"Failed to reach {provider}: {exc.reason}",
            ErrorCode.LLM_GENERATION_ERROR,
        ) from exc
    except OSError as exc:
        raise ProviderError(
            f"Failed to reach {provider}: {exc.__class__.__name__}: {exc}",
            ErrorCode.LLM_GENERATION_ERROR,
        ) from exc


def _raise_for_status(provider: str, model: str, status: int, body: str) -> None:
    if status < 400:
        return
    text = body[:500]
    if status in (401, 403) or "API key" in text:
        raise ProviderError(
            f"Missing or invalid API key for {provider}",
            ErrorCode.CONFIGURATION_ERROR,
            details={"status": status},
        )
    if status == 404 or "model_not_found" in text:
        raise ProviderError(
            f"Invalid model: {model} is not available for {provider}",
            ErrorCode.INVALID_MODEL,
            details={"status": status},
        )
    raise ProviderError(
        "Failed to generate project plan due to an unexpected error",
        ErrorCode.LLM_GENERATION_ERROR,
        details={"status": status, "body": text},
    )


def generate_plan(
    prompt: str,
    provider: str,
    model: str,
    attachments: Optional[list[str]] = None,
    *,
    api_key: Optional[str],
    timeout: float = LLM_TIMEOUT_SECONDS,
) -> PlanOutput:
    """Call *provider* and return the validated plan.

    Args:
        prompt: The user's goal.
        provider: One of ``openai``, ``google``, ``deepseek``.
        model: Provider model name.
        attachments: Attachment file contents (already read).
        api_key: Provider API key; ``None`` raises a configuration error.
        timeout: Socket timeout in seconds.

    Raises:
        ProviderError: With code ``INVALID_PROVIDER``, ``CONFIGURATION_ERROR``,
            ``INVALID_MODEL`` or ``LLM_GENERATION_ERROR``.
    """
    if provider not in SUPPORTED_PROVIDERS:
        raise ProviderError(
            f"Invalid provider: {provider}. Must be one of: {', '.join(SUPPORTED_PROVIDERS)}",
            ErrorCode.INVALID_PROVIDER,
        )
    if not api_key:
        raise ProviderError(
            f"Missing API key environment variable required for {provider}",
            ErrorCode.CONFIGURATION_ERROR,
        )

    llm_prompt = build_prompt(prompt, attachments or [])
    if provider == "google":
        url, headers, payload = _google_request(model, api_key, llm_prompt)
    else:
        base_url = OPENAI_BASE_URL if provider == "openai" else DEEPSEEK_BASE_URL
        url, headers, payload = _openai_compatible_request(base_url, model, api_key, llm_prompt)

    logger.info("Requesting project plan from {}:{}", provider, model)
    status, body = _post_json(provider, url, headers, payload, timeout)
    _raise_for_status(provider, model, status, body)

    try:
        text = _extract_text(provider, json.loads(body))
        plan = PlanOutput.model_validate_json(text)
    except (ValueError, TypeError, AttributeError, PydanticValidationError) as exc:
        raise ProviderError(
            "Failed to generate project plan: provider returned an invalid plan",
            ErrorCode.LLM_GENERATION_ERROR,
            details={"error": str(exc)},
        ) from exc

    logger.info("Provider {} returned a plan with {} tasks", provider, len(plan.tasks))
    return plan
