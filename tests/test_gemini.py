"""Gemini wrapper tests."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from firenews.config import GeminiConfig
from firenews.errors import SynthesisError
from firenews.services.gemini import create_gemini_client, generate_json


def _make_client(*outcomes: object) -> MagicMock:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(side_effect=list(outcomes))
    return client


def test_create_client_requires_api_key() -> None:
    settings = MagicMock()
    settings.gemini_api_key = ""

    with pytest.raises(SynthesisError):
        create_gemini_client(settings)


@patch("firenews.services.gemini.genai.Client")
def test_create_client_uses_api_key(mock_client_cls: MagicMock) -> None:
    settings = MagicMock()
    settings.gemini_api_key = "test-api-key"

    create_gemini_client(settings)

    mock_client_cls.assert_called_once_with(api_key="test-api-key")


@pytest.mark.asyncio
async def test_generate_json_requests_json_mode() -> None:
    client = _make_client(MagicMock(text='{"headline": "x"}'))

    text = await generate_json(client, GeminiConfig(max_output_tokens=1200), "prompt")

    assert text == '{"headline": "x"}'
    call = client.aio.models.generate_content.call_args
    assert call.kwargs["contents"] == "prompt"
    assert call.kwargs["config"].response_mime_type == "application/json"
    assert call.kwargs["config"].max_output_tokens == 1200


@pytest.mark.asyncio
async def test_generate_json_single_attempt_by_default() -> None:
    client = _make_client(RuntimeError("unavailable"), MagicMock(text="{}"))

    with pytest.raises(SynthesisError, match="RuntimeError"):
        await generate_json(client, GeminiConfig(), "prompt")

    assert client.aio.models.generate_content.await_count == 1


@pytest.mark.asyncio
@patch("firenews.services.gemini.asyncio.sleep", new_callable=AsyncMock)
async def test_generate_json_backs_off_between_attempts(mock_sleep: AsyncMock) -> None:
    client = _make_client(
        RuntimeError("flaky"),
        RuntimeError("flaky"),
        RuntimeError("flaky"),
    )

    with pytest.raises(SynthesisError):
        await generate_json(client, GeminiConfig(max_attempts=3), "prompt")

    assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_generate_json_rejects_empty_text() -> None:
    client = _make_client(MagicMock(text=None))

    with pytest.raises(SynthesisError, match="empty"):
        await generate_json(client, GeminiConfig(), "prompt")
