"""
Tests for the text/vision service client
"""
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import captioning_utils
from captioning_utils import OracleError, describe_image, normalize_service, rewrite_text
from prompts_lib import caption_to_prompt_instruction


def _gemini_client(response=None, error=None):
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=response, side_effect=error)
    return client


class TestNormalizeService:

    @pytest.mark.parametrize(
        "value,expected",
        [("Gemini", "gemini"), ("openai", "openai"), (" GROK ", "grok"), ("", "gemini"), (None, "gemini"), ("other", "gemini")],
    )
    def test_normalize(self, value, expected):
        assert normalize_service(value) == expected


class TestGemini:

    @pytest.mark.asyncio
    async def test_describe_sends_image_part_and_instruction(self):
        client = _gemini_client(SimpleNamespace(text=" 一只橘猫 "))
        content = base64.b64encode(b"png bytes").decode()

        with patch.object(captioning_utils.genai, "Client", return_value=client) as client_cls:
            result = await describe_image(content, "image/png", api_key="key")

        assert result == " 一只橘猫 "
        client_cls.assert_called_once_with(api_key="key")
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        image_part, instruction = kwargs["contents"]
        assert image_part.inline_data.data == b"png bytes"
        assert image_part.inline_data.mime_type == "image/png"
        assert instruction == caption_to_prompt_instruction

    @pytest.mark.asyncio
    async def test_rewrite_uses_system_instruction(self):
        client = _gemini_client(SimpleNamespace(text="rewritten"))

        with patch.object(captioning_utils.genai, "Client", return_value=client):
            result = await rewrite_text("system", "user", api_key="key", model="gemini-custom")

        assert result == "rewritten"
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-custom"
        assert kwargs["contents"] == "user"
        assert kwargs["config"].system_instruction == "system"

    @pytest.mark.asyncio
    async def test_sdk_errors_are_wrapped(self):
        client = _gemini_client(error=ValueError("quota exceeded"))

        with patch.object(captioning_utils.genai, "Client", return_value=client):
            with pytest.raises(OracleError, match="Gemini API error: quota exceeded"):
                await rewrite_text("system", "user", api_key="key")

    @pytest.mark.asyncio
    async def test_empty_description_is_an_error(self):
        client = _gemini_client(SimpleNamespace(text=None))

        with patch.object(captioning_utils.genai, "Client", return_value=client):
            with pytest.raises(OracleError, match="Gemini response was empty."):
                await describe_image("", "image/png", api_key="key")

    @pytest.mark.asyncio
    async def test_empty_rewrite_is_passed_through(self):
        client = _gemini_client(SimpleNamespace(text=None))

        with patch.object(captioning_utils.genai, "Client", return_value=client):
            assert await rewrite_text("system", "user", api_key="key") == ""


class TestOpenAICompatible:

    @pytest.mark.asyncio
    async def test_openai_describe_sends_data_url(self):
        client = MagicMock()
        client.responses.create = AsyncMock(return_value=SimpleNamespace(output_text="a dog"))

        with patch.object(captioning_utils, "AsyncOpenAI", return_value=client):
            result = await describe_image("ZG9n", "image/jpeg", api_key="key", service="openai")

        assert result == "a dog"
        message = client.responses.create.await_args.kwargs["input"][0]
        image = next(part for part in message["content"] if part["type"] == "input_image")
        assert image["image_url"] == "data:image/jpeg;base64,ZG9n"

    @pytest.mark.asyncio
    async def test_grok_rewrite_reads_output_items(self):
        response = SimpleNamespace(
            output_text=None,
            output=[SimpleNamespace(content=[SimpleNamespace(type="output_text", text="from items")])],
        )
        client = MagicMock()
        client.responses.create = AsyncMock(return_value=response)

        with patch.object(captioning_utils, "AsyncOpenAI", return_value=client) as client_cls:
            result = await rewrite_text("system", "user", api_key="key", service="grok")

        assert result == "from items"
        assert client_cls.call_args.kwargs["base_url"] == captioning_utils.GROK_BASE_URL
        assert client.responses.create.await_args.kwargs["model"] == "grok-4"

    @pytest.mark.asyncio
    async def test_grok_errors_carry_status(self):
        error = RuntimeError("bad request")
        error.response = SimpleNamespace(status_code=400, text="invalid image")
        client = MagicMock()
        client.responses.create = AsyncMock(side_effect=error)

        with patch.object(captioning_utils, "AsyncOpenAI", return_value=client):
            with pytest.raises(OracleError, match="Grok API HTTP 400: invalid image"):
                await describe_image("", "image/png", api_key="key", service="grok")


class TestMissingKey:

    @pytest.mark.asyncio
    async def test_no_call_without_api_key(self):
        with patch.object(captioning_utils.genai, "Client") as client_cls:
            with pytest.raises(OracleError, match="Missing API key for gemini"):
                await describe_image("", "image/png", api_key="")

        client_cls.assert_not_called()
