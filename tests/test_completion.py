"""
Tests for the completion client and response decoding.
"""

import pytest
import sys
from pathlib import Path
from types import SimpleNamespace

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestResponseDecoding:
    """Test code-fence stripping and JSON decoding."""

    def test_strip_code_fences(self):
        from transcript_ingest.utils.completion import strip_code_fences

        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'

    def test_parse_json_object(self):
        from transcript_ingest.utils.completion import parse_json_object

        assert parse_json_object('```JSON\n{"prefix": "MATH"}\n```') == {"prefix": "MATH"}

    @pytest.mark.parametrize("raw", ["", "   ", "not json", "[1, 2, 3]", '"text"'])
    def test_parse_json_object_rejects(self, raw):
        from transcript_ingest.utils.completion import parse_json_object
        from transcript_ingest.utils.errors import MalformedCompletionResponse

        with pytest.raises(MalformedCompletionResponse) as excinfo:
            parse_json_object(raw)
        assert excinfo.value.raw_response == raw


class TestStatusMapping:
    """Test HTTP status to error mapping."""

    def test_overloaded(self):
        from transcript_ingest.utils.completion import map_status_error
        from transcript_ingest.utils.errors import CompletionOverloaded

        error = map_status_error(503, "busy")
        assert isinstance(error, CompletionOverloaded)
        assert error.status == "overloaded"
        assert error.http_status == 503

    def test_rate_limited(self):
        from transcript_ingest.utils.completion import map_status_error
        from transcript_ingest.utils.errors import CompletionRateLimited

        error = map_status_error(429, "slow down")
        assert isinstance(error, CompletionRateLimited)
        assert error.status == "rate_limited"

    def test_other_statuses_are_unavailable(self):
        from transcript_ingest.utils.completion import map_status_error
        from transcript_ingest.utils.errors import CompletionUnavailable

        error = map_status_error(400, "bad request")
        assert isinstance(error, CompletionUnavailable)
        assert error.http_status == 400
        assert map_status_error(None, "?").http_status == 500


class TestGeminiCompletionClient:
    """Test the Gemini client without network access."""

    def test_missing_api_key(self):
        from transcript_ingest.utils.completion import GeminiCompletionClient
        from transcript_ingest.utils.errors import CompletionUnavailable

        client = GeminiCompletionClient(api_key=None)

        with pytest.raises(CompletionUnavailable, match="GEMINI_API_KEY"):
            client.complete_structured("prompt", 1000)

    def _client_with(self, generate_content):
        from transcript_ingest.utils.completion import GeminiCompletionClient

        client = GeminiCompletionClient(api_key="test-key", model="test-model", temperature=0.0)
        client._client = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
        return client

    def test_returns_response_text(self):
        pytest.importorskip("google.genai")
        seen = {}

        def generate_content(model, contents, config):
            seen.update(model=model, contents=contents, config=config)
            return SimpleNamespace(text='{"prefix": "MATH"}')

        client = self._client_with(generate_content)
        text = client.complete_structured("classify this", 5000)

        assert text == '{"prefix": "MATH"}'
        assert seen["model"] == "test-model"
        assert seen["contents"] == "classify this"
        assert seen["config"].temperature == 0.0
        assert seen["config"].http_options.timeout == 5000

    def test_api_error_status_is_mapped(self):
        genai_errors = pytest.importorskip("google.genai.errors")
        from transcript_ingest.utils.errors import CompletionOverloaded

        def generate_content(model, contents, config):
            raise genai_errors.APIError(
                503, {"error": {"code": 503, "message": "The model is overloaded.", "status": "UNAVAILABLE"}}
            )

        client = self._client_with(generate_content)

        with pytest.raises(CompletionOverloaded):
            client.complete_structured("prompt", 1000)

    def test_transport_error_is_unavailable(self):
        pytest.importorskip("google.genai")
        from transcript_ingest.utils.errors import CompletionUnavailable

        def generate_content(model, contents, config):
            raise ConnectionError("network down")

        client = self._client_with(generate_content)

        with pytest.raises(CompletionUnavailable, match="network down"):
            client.complete_structured("prompt", 1000)

    def test_empty_response_is_unavailable(self):
        pytest.importorskip("google.genai")
        from transcript_ingest.utils.errors import CompletionUnavailable

        client = self._client_with(lambda model, contents, config: SimpleNamespace(text=None))

        with pytest.raises(CompletionUnavailable):
            client.complete_structured("prompt", 1000)
