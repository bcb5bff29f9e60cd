"""
LLM client abstraction for SEO generation.

This module sends text-generation requests to the provider selected in the
AI settings (Gemini, OpenAI, Hugging Face, Ollama or Anthropic Claude),
with an in-memory response cache and a per-process rate limiter shared by
every client instance.
"""

import json
import logging
import re
import threading
import time
from typing import Callable, Optional

import anthropic
import httpx

from .errors import LLMClientError, RateLimitError, ValidationError
from .models import AIProvider, AISettings

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60
RATE_LIMIT_MAX_REQUESTS = 60
RATE_LIMIT_WINDOW_SECONDS = 60

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
HUGGINGFACE_URL = "https://api-inference.huggingface.co/models/{model}"

API_KEY_URLS = {
    AIProvider.GEMINI: "https://makersuite.google.com/app/apikey",
    AIProvider.OPENAI: "https://platform.openai.com/api-keys",
    AIProvider.HUGGINGFACE: "https://huggingface.co/settings/tokens",
    AIProvider.ANTHROPIC: "https://console.anthropic.com/settings/keys",
}

JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

ANALYSIS_PROMPTS = {
    "seo": "Analyze this content for SEO effectiveness:\n\n{content}\n\nProvide: keyword density, meta tag suggestions, improvement areas.",
    "readability": "Analyze the readability of this content:\n\n{content}\n\nProvide: reading level, sentence complexity, suggestions.",
    "keywords": "Extract and analyze keywords from this content:\n\n{content}\n\nProvide: main keywords, keyword frequency, LSI keywords.",
    "structure": "Analyze the structure of this content:\n\n{content}\n\nProvide: heading hierarchy, paragraph length, list usage.",
}


def _http_client() -> httpx.Client:
    return httpx.Client(
        timeout=httpx.Timeout(60.0, connect=30.0),
        follow_redirects=True,
    )


_shared_http: Optional[httpx.Client] = None
_shared_http_lock = threading.Lock()


def shared_http_client() -> httpx.Client:
    """Process-wide HTTP client used by every LLMClient and connection check."""
    global _shared_http
    with _shared_http_lock:
        if _shared_http is None or _shared_http.is_closed:
            _shared_http = _http_client()
        return _shared_http


def close_shared_http_client() -> None:
    """Close the process-wide HTTP client. The next request opens a new one."""
    global _shared_http
    with _shared_http_lock:
        if _shared_http is not None:
            _shared_http.close()
            _shared_http = None


class ResponseCache:
    """
    Prompt-keyed cache of generated text.

    Entries older than the TTL are dropped when read. There is no size
    bound; the process restarting is the only other eviction.
    """

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    @staticmethod
    def key(provider: AIProvider, model: str, prompt: str, temperature: float) -> str:
        return f"{provider.value}:{model}:{prompt}-{temperature}"

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is not None and self.clock() - entry[1] < self.ttl_seconds:
            return entry[0]
        self._entries.pop(key, None)
        return None

    def set(self, key: str, value: str) -> None:
        self._entries[key] = (value, self.clock())

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        """Number of entries and the timestamp (ms) of the oldest one."""
        oldest = min((ts for _, ts in self._entries.values()), default=None)
        return {
            "size": len(self._entries),
            "oldestEntry": int(oldest * 1000) if oldest is not None else None,
        }


class RateLimiter:
    """Fixed-window request counter."""

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._count = 0
        self._reset_at = clock() + window_seconds
        self._lock = threading.Lock()

    def allow(self) -> bool:
        """Count a request. Returns False once the window's budget is spent."""
        with self._lock:
            now = self.clock()
            if now > self._reset_at:
                self._count = 0
                self._reset_at = now + self.window_seconds
            if self._count >= self.max_requests:
                return False
            self._count += 1
            return True


# Shared across requests within one process
default_cache = ResponseCache()
default_rate_limiter = RateLimiter()


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable error message out of a provider error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.reason_phrase


def _post_json(http: httpx.Client, url: str, payload: dict, headers: Optional[dict] = None, **kwargs) -> object:
    response = http.post(url, json=payload, headers=headers, **kwargs)
    if response.status_code >= 400:
        raise LLMClientError(f"HTTP {response.status_code}: {_error_detail(response)}")
    return response.json()


def translate_error(provider: AIProvider, message: str) -> str:
    """Map a raw provider error onto an actionable message."""
    lowered = message.lower()
    if "api key" in lowered or "invalid" in lowered:
        url = API_KEY_URLS.get(provider)
        if url:
            return f"Invalid API key. Get a new one from {url}"
        return f"Invalid {provider.display_name} configuration: {message}"
    if "quota" in lowered:
        return f"API quota exceeded. Check your {provider.display_name} usage and billing."
    if "permission" in lowered or "403" in lowered:
        return f"API permission denied. Make sure your {provider.display_name} key can access this model."
    return f"{provider.display_name} API Error: {message or 'Unknown error. Check the server logs for details.'}"


class LLMClient:
    """
    Client for text generation against the configured provider.

    Attributes:
        settings: AI settings naming the provider, model and credentials.
        cache: Response cache; the process-wide cache by default.
        rate_limiter: Rate limiter; the process-wide limiter by default.
    """

    def __init__(
        self,
        settings: AISettings,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.settings = settings
        self.provider = settings.provider
        self.model = settings.model_for()
        self.api_key = settings.api_key_for() if self.provider.needs_api_key else ""
        self.cache = cache if cache is not None else default_cache
        self.rate_limiter = rate_limiter if rate_limiter is not None else default_rate_limiter
        self.http = http_client or shared_http_client()
        self._anthropic = None

    def _require_key(self) -> str:
        if not self.api_key:
            raise LLMClientError(
                f"No API key configured for {self.provider.display_name}. "
                "Add one in AI settings or set the provider's API key environment variable."
            )
        return self.api_key

    def _anthropic_client(self):
        if self._anthropic is None:
            self._anthropic = anthropic.Anthropic(
                api_key=self._require_key(),
                http_client=self.http,
            )
        return self._anthropic

    def _call_gemini(self, prompt: str, temperature: float, max_tokens: int) -> str:
        data = _post_json(
            self.http,
            GEMINI_URL.format(model=self.model),
            {
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
            },
            params={"key": self._require_key()},
        )
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise LLMClientError("Empty response from model")
        return "".join(part.get("text", "") for part in parts)

    def _call_openai(self, prompt: str, temperature: float, max_tokens: int) -> str:
        data = _post_json(
            self.http,
            OPENAI_URL,
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            headers={"Authorization": f"Bearer {self._require_key()}"},
        )
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise LLMClientError("Empty response from model")

    def _call_huggingface(self, prompt: str, temperature: float, max_tokens: int) -> str:
        data = _post_json(
            self.http,
            HUGGINGFACE_URL.format(model=self.model),
            {
                "inputs": prompt,
                "parameters": {
                    "temperature": temperature,
                    "max_new_tokens": max_tokens,
                    "return_full_text": False,
                },
            },
            headers={"Authorization": f"Bearer {self._require_key()}"},
        )
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0].get("generated_text", "")
        if isinstance(data, dict) and "generated_text" in data:
            return data["generated_text"]
        raise LLMClientError("Empty response from model")

    def _call_ollama(self, prompt: str, temperature: float, max_tokens: int) -> str:
        data = _post_json(
            self.http,
            f"{self.settings.ollama_url.rstrip('/')}/api/generate",
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": temperature, "num_predict": max_tokens},
            },
        )
        if not isinstance(data, dict):
            raise LLMClientError("Empty response from model")
        return data.get("response", "")

    def _call_anthropic(self, prompt: str, temperature: float, max_tokens: int) -> str:
        response = self._anthropic_client().messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text

    def _complete(self, prompt: str, temperature: float, max_tokens: int) -> str:
        handlers = {
            AIProvider.GEMINI: self._call_gemini,
            AIProvider.OPENAI: self._call_openai,
            AIProvider.HUGGINGFACE: self._call_huggingface,
            AIProvider.OLLAMA: self._call_ollama,
            AIProvider.ANTHROPIC: self._call_anthropic,
        }
        return handlers[self.provider](prompt, temperature, max_tokens)

    def generate_text(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        cache: bool = True,
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Prompt text.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens in the response.
            cache: Serve from and store into the response cache.

        Returns:
            The generated text.

        Raises:
            RateLimitError: When the per-minute budget is spent.
            LLMClientError: When the provider call fails.
        """
        key = ResponseCache.key(self.provider, self.model, prompt, temperature)
        if cache:
            cached = self.cache.get(key)
            if cached:
                return cached

        if self.provider.needs_api_key:
            self._require_key()
        if not self.rate_limiter.allow():
            raise RateLimitError("Rate limit exceeded. Please try again in a moment.")

        try:
            text = self._complete(prompt, temperature, max_tokens)
        except Exception as e:
            logger.error(f"{self.provider.display_name} request failed ({type(e).__name__}): {e}")
            raise LLMClientError(translate_error(self.provider, str(e)))

        if cache:
            self.cache.set(key, text)
        return text

    def generate_json(
        self,
        prompt: str,
        schema: str,
        temperature: float = 0.5,
        cache: bool = True,
    ) -> dict:
        """
        Generate a JSON object matching `schema`.

        The model's reply is searched for the outermost {...} block, so any
        prose around the JSON is ignored.

        Raises:
            LLMClientError: If no JSON object can be parsed from the reply.
        """
        full_prompt = (
            f"{prompt}\n\nRespond with valid JSON matching this schema:\n{schema}"
            "\n\nReturn ONLY the JSON, no explanation."
        )
        text = self.generate_text(full_prompt, temperature=temperature or 0.5, cache=cache)

        match = JSON_BLOCK.search(text)
        if not match:
            logger.error(f"No JSON found in response: {text[:200]!r}")
            raise LLMClientError("Failed to parse AI response as JSON")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.error(f"JSON parse error: {e}; response: {text[:200]!r}")
            raise LLMClientError("Failed to parse AI response as JSON")
        if not isinstance(data, dict):
            raise LLMClientError("Failed to parse AI response as JSON")
        return data

    def analyze_content(self, content: str, kind: str) -> str:
        """Free-form analysis of content: seo, readability, keywords or structure."""
        if kind not in ANALYSIS_PROMPTS:
            raise ValidationError(f"Invalid analysis type. Must be one of: {', '.join(ANALYSIS_PROMPTS)}")
        return self.generate_text(ANALYSIS_PROMPTS[kind].format(content=content), temperature=0.3)


def create_llm_client(settings: AISettings, **kwargs) -> LLMClient:
    """
    Factory function to create an LLM client.

    Args:
        settings: AI settings to read the provider, model and key from.
        **kwargs: Passed through to LLMClient (cache, rate_limiter, http_client).

    Returns:
        Configured LLMClient instance.
    """
    return LLMClient(settings, **kwargs)


def _send_hello(provider: AIProvider, api_key: str, model: str, ollama_url: str, http: httpx.Client) -> str:
    if provider == AIProvider.GEMINI:
        data = _post_json(
            http,
            GEMINI_URL.format(model=model),
            {"contents": [{"role": "user", "parts": [{"text": "Hello"}]}]},
            params={"key": api_key},
        )
        try:
            return data["candidates"][0]["content"]["parts"][0].get("text", "")
        except (KeyError, IndexError, TypeError):
            return ""
    if provider == AIProvider.OPENAI:
        _post_json(
            http,
            OPENAI_URL,
            {"model": model, "messages": [{"role": "user", "content": "Hello"}], "max_tokens": 10},
            headers={"Authorization": f"Bearer {api_key}"},
        )
        return ""
    if provider == AIProvider.HUGGINGFACE:
        _post_json(
            http,
            HUGGINGFACE_URL.format(model=model),
            {"inputs": "Hello"},
            headers={"Authorization": f"Bearer {api_key}"},
        )
        return ""
    if provider == AIProvider.OLLAMA:
        _post_json(
            http,
            f"{ollama_url.rstrip('/')}/api/generate",
            {"model": model, "prompt": "Hello", "stream": False},
        )
        return ""
    client = anthropic.Anthropic(api_key=api_key, http_client=http)
    response = client.messages.create(
        model=model,
        max_tokens=10,
        messages=[{"role": "user", "content": "Hello"}],
    )
    return response.content[0].text


def check_connection(
    provider: Optional[str],
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    ollama_url: Optional[str] = None,
    http_client: Optional[httpx.Client] = None,
) -> dict:
    """
    Send a "Hello" prompt to a provider with the given credentials.

    Returns:
        {"success": bool, "message": str} plus a short "response" excerpt
        when the provider returned text.

    Raises:
        ValidationError: If the provider is unknown.
    """
    try:
        selected = AIProvider(provider)
    except ValueError:
        raise ValidationError("Invalid provider")

    http = http_client or shared_http_client()
    short_name = "Gemini" if selected == AIProvider.GEMINI else selected.display_name
    try:
        text = _send_hello(selected, api_key or "", model or "", ollama_url or "http://localhost:11434", http)
    except Exception as e:
        logger.warning(f"{selected.display_name} connection test failed: {e}")
        message = f"{short_name} connection failed: {e}"
        if selected == AIProvider.OLLAMA:
            message += ". Make sure Ollama is running locally."
        return {"success": False, "message": message}

    result = {"success": True, "message": f"Successfully connected to {selected.display_name}"}
    if text:
        result["response"] = text[:50]
    return result


def diagnostics(settings: AISettings) -> dict:
    """Report whether the active provider is configured, without exposing the key."""
    key = settings.api_key_for()
    return {
        "provider": settings.provider.value,
        "model": settings.model_for(),
        "apiKeyRequired": settings.provider.needs_api_key,
        "apiKeySet": bool(key),
        "apiKeyLength": len(key),
        "apiKeyPrefix": (key[:10] + "...") if key else "",
        "cache": default_cache.stats(),
    }
