"""Tests for the LLM client, response cache and rate limiter."""

from unittest.mock import MagicMock, Mock, patch

import pytest

from nextgen_site.errors import LLMClientError, RateLimitError, ValidationError
from nextgen_site.llm_client import (
    LLMClient,
    RateLimiter,
    ResponseCache,
    check_connection,
    close_shared_http_client,
    diagnostics,
    shared_http_client,
    translate_error,
)
from nextgen_site.models import AIProvider, AISettings


class FakeClock:
    """Manually advanced clock for cache and rate limiter tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _response(status_code: int = 200, json_body=None, text: str = "") -> Mock:
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_body
    response.text = text
    response.reason_phrase = "Error"
    return response


def _settings(provider: AIProvider = AIProvider.GEMINI, key: str = "test-key") -> AISettings:
    return AISettings(
        provider=provider,
        api_keys={provider.value: key},
        models={provider.value: "test-model"},
    )


def _client(provider=AIProvider.GEMINI, key="test-key", reply=None, **kwargs):
    http = MagicMock()
    if reply is not None:
        http.post.return_value = reply
    client = LLMClient(
        _settings(provider, key),
        cache=kwargs.pop("cache", ResponseCache()),
        rate_limiter=kwargs.pop("rate_limiter", RateLimiter()),
        http_client=http,
    )
    return client, http


class TestResponseCache:
    """Tests for ResponseCache."""

    def test_hit_and_expiry(self):
        """Test that entries expire after the TTL."""
        clock = FakeClock()
        cache = ResponseCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v")

        clock.now += 9
        assert cache.get("k") == "v"

        clock.now += 2
        assert cache.get("k") is None
        assert cache.stats()["size"] == 0

    def test_stats(self):
        """Test size and oldest entry timestamp in milliseconds."""
        clock = FakeClock(1000.0)
        cache = ResponseCache(clock=clock)
        assert cache.stats() == {"size": 0, "oldestEntry": None}

        cache.set("a", "1")
        clock.now = 1005.0
        cache.set("b", "2")

        assert cache.stats() == {"size": 2, "oldestEntry": 1000000}

    def test_key_includes_temperature(self):
        """Test that the same prompt at another temperature is a different key."""
        key = ResponseCache.key
        assert key(AIProvider.GEMINI, "m", "p", 0.7) != key(AIProvider.GEMINI, "m", "p", 0.5)

    def test_key_includes_provider_and_model(self):
        """Test that switching provider or model does not reuse cached text."""
        key = ResponseCache.key
        base = key(AIProvider.GEMINI, "gemini-1.5-flash", "p", 0.7)

        assert base != key(AIProvider.OPENAI, "gemini-1.5-flash", "p", 0.7)
        assert base != key(AIProvider.GEMINI, "gemini-1.5-pro", "p", 0.7)


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_window(self):
        """Test that the budget resets after the window passes."""
        clock = FakeClock()
        limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)

        assert limiter.allow()
        assert limiter.allow()
        assert not limiter.allow()

        clock.now += 61
        assert limiter.allow()


class TestProviders:
    """Tests for the per-provider request shapes."""

    def test_gemini(self):
        """Test the Gemini request and response parsing."""
        reply = _response(json_body={"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "world"}]}}]})
        client, http = _client(AIProvider.GEMINI, reply=reply)

        assert client.generate_text("Say hi", temperature=0.2, max_tokens=50) == "Hello world"

        url = http.post.call_args.args[0]
        kwargs = http.post.call_args.kwargs
        assert url.endswith("/models/test-model:generateContent")
        assert kwargs["params"] == {"key": "test-key"}
        assert kwargs["json"]["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 50}

    def test_openai(self):
        """Test the OpenAI request and response parsing."""
        reply = _response(json_body={"choices": [{"message": {"content": "Hi"}}]})
        client, http = _client(AIProvider.OPENAI, reply=reply)

        assert client.generate_text("Say hi") == "Hi"
        assert http.post.call_args.kwargs["headers"] == {"Authorization": "Bearer test-key"}
        assert http.post.call_args.kwargs["json"]["model"] == "test-model"

    def test_huggingface(self):
        """Test the Hugging Face list response."""
        reply = _response(json_body=[{"generated_text": "Hi there"}])
        client, _ = _client(AIProvider.HUGGINGFACE, reply=reply)

        assert client.generate_text("Say hi") == "Hi there"

    def test_ollama_needs_no_key(self):
        """Test that Ollama works without an API key."""
        reply = _response(json_body={"response": "Local hi"})
        client, http = _client(AIProvider.OLLAMA, key="", reply=reply)

        assert client.generate_text("Say hi") == "Local hi"
        assert http.post.call_args.args[0] == "http://localhost:11434/api/generate"

    def test_anthropic(self):
        """Test that Anthropic goes through the SDK with the shared http client."""
        client, http = _client(AIProvider.ANTHROPIC)
        message = MagicMock()
        message.content = [MagicMock(text="Claude hi")]

        with patch("nextgen_site.llm_client.anthropic.Anthropic") as mock_cls:
            mock_cls.return_value.messages.create.return_value = message
            assert client.generate_text("Say hi", max_tokens=20) == "Claude hi"

        mock_cls.assert_called_once_with(api_key="test-key", http_client=http)
        create_kwargs = mock_cls.return_value.messages.create.call_args.kwargs
        assert create_kwargs["model"] == "test-model"
        assert create_kwargs["max_tokens"] == 20


class TestGenerateText:
    """Tests for caching, rate limiting and error handling."""

    def test_cached_reply_skips_provider(self):
        """Test that a repeated prompt is served from the cache."""
        reply = _response(json_body={"choices": [{"message": {"content": "Hi"}}]})
        client, http = _client(AIProvider.OPENAI, reply=reply)

        client.generate_text("Say hi")
        client.generate_text("Say hi")

        assert http.post.call_count == 1

    def test_cache_disabled(self):
        """Test that cache=False always calls the provider."""
        reply = _response(json_body={"choices": [{"message": {"content": "Hi"}}]})
        client, http = _client(AIProvider.OPENAI, reply=reply)

        client.generate_text("Say hi", cache=False)
        client.generate_text("Say hi", cache=False)

        assert http.post.call_count == 2

    def test_model_switch_skips_cached_reply(self):
        """Test that a cached reply from one model is not served for another."""
        cache = ResponseCache()
        reply = _response(json_body={"choices": [{"message": {"content": "Hi"}}]})
        first, http = _client(AIProvider.OPENAI, reply=reply, cache=cache)
        first.generate_text("Say hi")

        settings = _settings(AIProvider.OPENAI)
        settings.models["openai"] = "other-model"
        second = LLMClient(settings, cache=cache, rate_limiter=RateLimiter(), http_client=http)
        second.generate_text("Say hi")

        assert http.post.call_count == 2

    def test_missing_key(self):
        """Test that a missing key is reported before any request."""
        client, http = _client(AIProvider.OPENAI, key="")

        with pytest.raises(LLMClientError, match="No API key configured for OpenAI"):
            client.generate_text("Say hi")
        http.post.assert_not_called()

    def test_rate_limited(self):
        """Test that an exhausted budget raises RateLimitError."""
        limiter = RateLimiter(max_requests=0)
        client, http = _client(AIProvider.OPENAI, rate_limiter=limiter)

        with pytest.raises(RateLimitError):
            client.generate_text("Say hi")
        http.post.assert_not_called()

    def test_http_error_translated(self):
        """Test that an API key error becomes an actionable message."""
        reply = _response(401, json_body={"error": {"message": "Incorrect API key provided"}})
        client, _ = _client(AIProvider.OPENAI, reply=reply)

        with pytest.raises(LLMClientError, match="platform.openai.com/api-keys"):
            client.generate_text("Say hi")


class TestGenerateJson:
    """Tests for generate_json and analyze_content."""

    def test_json_extracted_from_prose(self):
        """Test that surrounding prose is ignored."""
        text = 'Sure! Here it is:\n{"metaTitle": "T", "keywords": ["a"]}\nHope that helps.'
        reply = _response(json_body={"choices": [{"message": {"content": text}}]})
        client, _ = _client(AIProvider.OPENAI, reply=reply)

        assert client.generate_json("prompt", "{}") == {"metaTitle": "T", "keywords": ["a"]}

    @pytest.mark.parametrize("text", ["no json here", "{not: valid}", "[1, 2]"])
    def test_unparseable(self, text):
        """Test that non-object replies raise LLMClientError."""
        reply = _response(json_body={"choices": [{"message": {"content": text}}]})
        client, _ = _client(AIProvider.OPENAI, reply=reply)

        with pytest.raises(LLMClientError, match="Failed to parse AI response as JSON"):
            client.generate_json("prompt", "{}")

    def test_analyze_content_kind(self):
        """Test that unknown analysis kinds are rejected."""
        client, _ = _client(AIProvider.OPENAI)

        with pytest.raises(ValidationError, match="Invalid analysis type"):
            client.analyze_content("text", "sentiment")


class TestTranslateError:
    """Tests for translate_error."""

    def test_quota(self):
        """Test the quota message."""
        assert "quota exceeded" in translate_error(AIProvider.GEMINI, "Quota exhausted")

    def test_permission(self):
        """Test the permission message."""
        assert "permission denied" in translate_error(AIProvider.OPENAI, "HTTP 403: Forbidden")

    def test_ollama_invalid_has_no_key_url(self):
        """Test that Ollama configuration errors do not point at an API key page."""
        assert translate_error(AIProvider.OLLAMA, "invalid model").startswith("Invalid Ollama configuration")

    def test_fallback(self):
        """Test the generic provider error."""
        assert translate_error(AIProvider.GEMINI, "boom") == "Google Gemini API Error: boom"


class TestCheckConnection:
    """Tests for check_connection and diagnostics."""

    def test_success_with_excerpt(self):
        """Test a successful Gemini connection check."""
        http = MagicMock()
        http.post.return_value = _response(
            json_body={"candidates": [{"content": {"parts": [{"text": "Hello! How can I help you today?" * 3}]}}]}
        )

        result = check_connection("gemini", "key", "gemini-1.5-flash", http_client=http)

        assert result["success"]
        assert result["message"] == "Successfully connected to Google Gemini"
        assert len(result["response"]) == 50

    def test_failure(self):
        """Test a failed OpenAI connection check."""
        http = MagicMock()
        http.post.return_value = _response(401, json_body={"error": {"message": "bad key"}})

        result = check_connection("openai", "key", "gpt-3.5-turbo", http_client=http)

        assert result == {"success": False, "message": "OpenAI connection failed: HTTP 401: bad key"}

    def test_ollama_failure_hint(self):
        """Test the Ollama hint when the local server is down."""
        http = MagicMock()
        http.post.side_effect = ConnectionError("refused")

        result = check_connection("ollama", model="llama2", http_client=http)

        assert not result["success"]
        assert result["message"].endswith("Make sure Ollama is running locally.")

    def test_invalid_provider(self):
        """Test that unknown providers raise ValidationError."""
        with pytest.raises(ValidationError, match="Invalid provider"):
            check_connection("cohere")

    def test_diagnostics(self):
        """Test that diagnostics report key presence without the full key."""
        report = diagnostics(_settings(AIProvider.OPENAI, key="sk-1234567890abcdef"))

        assert report["provider"] == "openai"
        assert report["apiKeySet"]
        assert report["apiKeyLength"] == 19
        assert report["apiKeyPrefix"] == "sk-1234567..."
        assert "cache" in report


class TestSharedHttpClient:
    """Tests for the process-wide HTTP client."""

    def test_clients_share_one_connection_pool(self):
        """Test that LLM clients and connection checks reuse one httpx.Client."""
        first = LLMClient(_settings())
        second = LLMClient(_settings(AIProvider.OPENAI))

        assert first.http is second.http
        assert first.http is shared_http_client()

    def test_check_connection_uses_shared_client(self):
        """Test that connection checks do not open a client per call."""
        with patch("nextgen_site.llm_client._send_hello", return_value="") as mock_hello:
            check_connection("openai", "key", "gpt-3.5-turbo")

        assert mock_hello.call_args.args[-1] is shared_http_client()

    def test_close_reopens_on_next_use(self):
        """Test that closing the shared client leaves the next caller a fresh one."""
        http = shared_http_client()

        close_shared_http_client()

        assert http.is_closed
        replacement = shared_http_client()
        assert replacement is not http
        assert not replacement.is_closed
