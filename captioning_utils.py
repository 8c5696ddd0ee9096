from __future__ import annotations

import base64
import logging
from typing import Any, Optional

import httpx
from google import genai
from google.genai import types
from openai import AsyncOpenAI

from prompts_lib import caption_to_prompt_instruction

logger = logging.getLogger(__name__)

GROK_BASE_URL = "https://api.x.ai/v1"

DEFAULT_MODELS = {
    "gemini": {"describe": "gemini-2.5-flash", "rewrite": "gemini-2.5-flash"},
    "openai": {"describe": "gpt-4.1-2025-04-14", "rewrite": "gpt-4.1-2025-04-14"},
    "grok": {"describe": "grok-2-vision-latest", "rewrite": "grok-4"},
}


class OracleError(RuntimeError):
    """Raised when the text/vision service cannot produce a result."""


def normalize_service(value: Optional[str]) -> str:
    key = (value or "").strip().lower()
    if key in {"openai", "gpt"}:
        return "openai"
    if key in {"grok", "xai", "x.ai"}:
        return "grok"
    return "gemini"


def _resolve_model(service: str, operation: str, model: Optional[str]) -> str:
    return model or DEFAULT_MODELS[service][operation]


def _data_url(content: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{content}"


def _http_error_details(exc: Exception) -> str:
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    error_body = ""
    if response is not None:
        try:
            error_body = response.text
        except Exception:
            error_body = ""
    status_line = f" {status_code}" if status_code else ""
    detail_line = f": {error_body}" if error_body else ""
    return f"HTTP{status_line}{detail_line}"


def _response_output_text(response: Any) -> Optional[str]:
    output_text = getattr(response, "output_text", None)
    if output_text:
        return str(output_text)

    for item in getattr(response, "output", []) or []:
        for content in getattr(item, "content", []) or []:
            if getattr(content, "type", "") in {"output_text", "text"}:
                text = getattr(content, "text", "")
                if text:
                    return str(text)
    return None


async def _gemini_describe(content: str, mime_type: str, api_key: str, model: str) -> str:
    try:
        image_bytes = base64.b64decode(content)
        client = genai.Client(api_key=api_key)
        response = await client.aio.models.generate_content(
            model=model,
            contents=[
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                caption_to_prompt_instruction,
            ],
        )
    except Exception as exc:
        raise OracleError(f"Gemini API error: {exc}") from exc

    text = getattr(response, "text", None)
    if not text:
        raise OracleError("Gemini response was empty.")
    return text


async def _gemini_rewrite(system_instruction: str, user_instruction: str, api_key: str, model: str) -> str:
    try:
        client = genai.Client(api_key=api_key)
        response = await client.aio.models.generate_content(
            model=model,
            config=types.GenerateContentConfig(system_instruction=system_instruction),
            contents=user_instruction,
        )
    except Exception as exc:
        raise OracleError(f"Gemini API error: {exc}") from exc

    text = getattr(response, "text", None)
    return text or ""


async def _openai_describe(content: str, mime_type: str, api_key: str, model: str) -> str:
    try:
        client = AsyncOpenAI(api_key=api_key)
        response = await client.responses.create(
            model=model,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": caption_to_prompt_instruction},
                        {
                            "type": "input_image",
                            "image_url": _data_url(content, mime_type),
                            "detail": "high",
                        },
                    ],
                }
            ],
        )
    except Exception as exc:
        raise OracleError(f"OpenAI API error: {exc}") from exc

    text = _response_output_text(response)
    if not text:
        raise OracleError("OpenAI response was empty.")
    return text


async def _openai_rewrite(system_instruction: str, user_instruction: str, api_key: str, model: str) -> str:
    try:
        client = AsyncOpenAI(api_key=api_key)
        response = await client.responses.create(
            model=model,
            input=[
                {"role": "developer", "content": system_instruction},
                {"role": "user", "content": user_instruction},
            ],
        )
    except Exception as exc:
        raise OracleError(f"OpenAI API error: {exc}") from exc

    text = _response_output_text(response)
    return text or ""


def _grok_client(api_key: str) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=api_key,
        base_url=GROK_BASE_URL,
        timeout=httpx.Timeout(3600.0),
    )


async def _grok_describe(content: str, mime_type: str, api_key: str, model: str) -> str:
    try:
        client = _grok_client(api_key)
        response = await client.responses.create(
            model=model,
            input=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "input_image",
                            "image_url": _data_url(content, mime_type),
                            "detail": "high",
                        },
                        {"type": "input_text", "text": caption_to_prompt_instruction},
                    ],
                }
            ],
            store=False,
        )
    except Exception as exc:
        raise OracleError(f"Grok API {_http_error_details(exc)} {exc}") from exc

    text = _response_output_text(response)
    if not text:
        raise OracleError("Grok response was empty.")
    return text


async def _grok_rewrite(system_instruction: str, user_instruction: str, api_key: str, model: str) -> str:
    try:
        client = _grok_client(api_key)
        response = await client.responses.create(
            model=model,
            input=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_instruction},
            ],
            store=False,
        )
    except Exception as exc:
        raise OracleError(f"Grok API {_http_error_details(exc)} {exc}") from exc

    text = _response_output_text(response)
    return text or ""


_DESCRIBERS = {
    "gemini": _gemini_describe,
    "openai": _openai_describe,
    "grok": _grok_describe,
}

_REWRITERS = {
    "gemini": _gemini_rewrite,
    "openai": _openai_rewrite,
    "grok": _grok_rewrite,
}


async def describe_image(
    content: str,
    mime_type: str,
    *,
    api_key: str,
    service: str = "gemini",
    model: Optional[str] = None,
) -> str:
    """Ask the selected service for a reverse prompt of one base64-encoded image.

    The returned text is passed through as the service produced it. Any
    failure, including a missing key, is raised as :class:`OracleError`.
    """
    service = normalize_service(service)
    if not api_key:
        raise OracleError(f"Missing API key for {service}.")

    try:
        return await _DESCRIBERS[service](
            content, mime_type, api_key, _resolve_model(service, "describe", model)
        )
    except OracleError:
        logger.exception("Reverse prompt request to %s failed", service)
        raise


async def rewrite_text(
    system_instruction: str,
    user_instruction: str,
    *,
    api_key: str,
    service: str = "gemini",
    model: Optional[str] = None,
) -> str:
    """Send a system instruction plus a user instruction and return the rewritten prompt."""
    service = normalize_service(service)
    if not api_key:
        raise OracleError(f"Missing API key for {service}.")

    try:
        return await _REWRITERS[service](
            system_instruction, user_instruction, api_key, _resolve_model(service, "rewrite", model)
        )
    except OracleError:
        logger.exception("Prompt rewrite request to %s failed", service)
        raise
