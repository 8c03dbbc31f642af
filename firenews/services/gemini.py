"""Gemini client factory and JSON-mode generation."""

from __future__ import annotations

import asyncio
import logging

from google import genai
from google.genai import types

from firenews.config import GeminiConfig, Settings, get_settings
from firenews.errors import SynthesisError

logger = logging.getLogger(__name__)

_BASE_RETRY_DELAY = 1.0


def create_gemini_client(settings: Settings | None = None) -> genai.Client:
    """Create a Gemini client from application settings.

    Raises:
        SynthesisError: If no API key is configured.
    """
    if settings is None:
        settings = get_settings()
    if not settings.gemini_api_key:
        raise SynthesisError("GEMINI_API_KEY is not configured")
    return genai.Client(api_key=settings.gemini_api_key)


async def generate_json(
    client: genai.Client,
    gemini: GeminiConfig,
    prompt: str,
) -> str:
    """Request a JSON response and return its raw text.

    Makes up to ``gemini.max_attempts`` calls, sleeping 1s, 2s, 4s, ...
    between failed ones.

    Raises:
        SynthesisError: When every attempt fails or the model returns no text.
    """
    config = types.GenerateContentConfig(
        response_mime_type="application/json",
        max_output_tokens=gemini.max_output_tokens,
    )
    attempts = max(1, gemini.max_attempts)
    for attempt in range(attempts):
        try:
            response = await client.aio.models.generate_content(
                model=gemini.model,
                contents=prompt,
                config=config,
            )
        except Exception as exc:
            if attempt == attempts - 1:
                logger.error(
                    "Gemini call failed after %d attempt(s): %s",
                    attempts,
                    type(exc).__name__,
                )
                raise SynthesisError(f"Gemini call failed: {type(exc).__name__}") from exc
            delay = _BASE_RETRY_DELAY * (2**attempt)
            logger.warning(
                "Gemini call failed (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1,
                attempts,
                delay,
                type(exc).__name__,
            )
            await asyncio.sleep(delay)
            continue

        if not response.text:
            raise SynthesisError("Gemini returned an empty response")
        return response.text

    raise SynthesisError("Gemini was not called")
