"""
Language-completion capability.

Provides:
- CompletionClient protocol (prompt text in, raw response text out)
- GeminiCompletionClient over the google-genai SDK
- Response decoding: code-fence stripping and JSON object parsing
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Protocol

from .errors import (
    CompletionError,
    CompletionOverloaded,
    CompletionRateLimited,
    CompletionUnavailable,
    MalformedCompletionResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-lite"
DEFAULT_TIMEOUT_MS = 120_000


# ============================================================================
# Capability Interface
# ============================================================================

class CompletionClient(Protocol):
    """Anything that turns a prompt into raw response text."""

    def complete_structured(self, prompt_text: str, timeout_ms: int) -> str:
        ...


# ============================================================================
# Gemini Implementation
# ============================================================================

class GeminiCompletionClient:
    """
    Completion client backed by Google Gemini.

    The SDK client is created lazily so that constructing the pipeline never
    needs network access or credentials.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        max_output_tokens: int = 32768
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._client = None

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise CompletionUnavailable(
                    "Gemini API not configured. Please set GEMINI_API_KEY."
                )
            try:
                from google import genai
            except ImportError as e:
                raise CompletionUnavailable(
                    "google-genai is required. Install with: pip install google-genai"
                ) from e
            self._client = genai.Client(api_key=self.api_key)
            logger.info(f"Gemini client initialized (model {self.model})")
        return self._client

    def complete_structured(self, prompt_text: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> str:
        """
        Send a prompt and return the raw response text.

        Raises:
            CompletionOverloaded: HTTP 503 from the service
            CompletionRateLimited: HTTP 429 from the service
            CompletionUnavailable: Any other failure
        """
        client = self._get_client()
        from google.genai import errors, types

        try:
            response = client.models.generate_content(
                model=self.model,
                contents=prompt_text,
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                    http_options=types.HttpOptions(timeout=timeout_ms),
                )
            )
        except errors.APIError as e:
            raise map_status_error(getattr(e, "code", None), str(e)) from e
        except Exception as e:
            raise CompletionUnavailable(f"Completion request failed: {e}") from e

        text = response.text
        if text is None:
            raise CompletionUnavailable("Completion service returned no text")

        logger.debug(f"Completion returned {len(text)} characters")
        return text


def map_status_error(http_status: Optional[int], message: str) -> CompletionError:
    """Map a service HTTP status to the matching completion error."""
    if http_status == 503:
        return CompletionOverloaded(message)
    if http_status == 429:
        return CompletionRateLimited(message)
    return CompletionUnavailable(message, http_status=http_status or 500)


# ============================================================================
# Response Decoding
# ============================================================================

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapped around a JSON payload."""
    return _FENCE_RE.sub("", text or "").strip()


def parse_json_object(raw_response: str) -> Dict[str, Any]:
    """
    Decode a completion response into a JSON object.

    Raises:
        MalformedCompletionResponse: If the text is not a JSON object
    """
    cleaned = strip_code_fences(raw_response)
    if not cleaned:
        raise MalformedCompletionResponse("Empty completion response", raw_response)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug(f"Raw response: {cleaned[:500]}")
        raise MalformedCompletionResponse(
            f"Response is not valid JSON: {e}", raw_response
        ) from e

    if not isinstance(data, dict):
        raise MalformedCompletionResponse(
            f"Expected a JSON object, got {type(data).__name__}", raw_response
        )
    return data
