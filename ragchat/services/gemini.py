import time
import numpy as np
import requests
from flask import current_app
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from ragchat.errors import ConfigError, EmptyCompletion, UpstreamUnavailable

EMBED_MAX_ATTEMPTS = 5


class _TransientEmbeddingError(Exception):
    """429, any 5xx, or no response within the timeout."""

    def __init__(self, reason, status=None):
        super().__init__(reason)
        self.status = status


def _is_retryable(status_code):
    return status_code == 429 or 500 <= status_code < 600


def _error_message(resp):
    try:
        data = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return data["error"].get("message") or f"HTTP {resp.status_code}"
    return f"HTTP {resp.status_code}"


class GeminiService:
    """Wrapper around the Gemini REST API for embeddings and text generation."""

    def __init__(self, sleep=None):
        cfg = current_app.config
        self.api_key = cfg.get("LLM_API_KEY")
        if not self.api_key:
            raise ConfigError("LLM_API_KEY is not set")
        self.base_url = cfg["LLM_BASE_URL"].rstrip("/")
        self.embedding_model = cfg["EMBEDDING_MODEL"]
        self.chat_model = cfg["CHAT_MODEL"]
        self.embed_timeout = cfg["EMBED_TIMEOUT_SECONDS"]
        self.chat_timeout = cfg["CHAT_TIMEOUT_SECONDS"]
        self._sleep = sleep or time.sleep

    def _headers(self):
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def embed(self, text):
        """
        Embed one piece of text.

        Retries 429/5xx/timeouts up to EMBED_MAX_ATTEMPTS times, sleeping
        1, 2, 4, 8 seconds between attempts. Any other error status fails at once.

        Returns: np.ndarray of float32
        """
        retrying = Retrying(
            retry=retry_if_exception_type(_TransientEmbeddingError),
            stop=stop_after_attempt(EMBED_MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            sleep=self._sleep,
            before_sleep=self._log_embed_retry,
            reraise=True,
        )
        try:
            return retrying(self._embed_once, text)
        except _TransientEmbeddingError as e:
            raise UpstreamUnavailable(
                f"Embedding API failed after {EMBED_MAX_ATTEMPTS} attempts: {e}", status=e.status
            ) from e

    def _embed_once(self, text):
        payload = {"content": {"parts": [{"text": text}]}}
        try:
            resp = requests.post(
                f"{self.base_url}/models/{self.embedding_model}:embedContent",
                headers=self._headers(),
                json=payload,
                timeout=self.embed_timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise _TransientEmbeddingError(f"no response: {e.__class__.__name__}") from e

        if resp.ok:
            try:
                values = resp.json()["embedding"]["values"]
            except (ValueError, KeyError, TypeError) as e:
                raise UpstreamUnavailable("Malformed embedding response", status=resp.status_code) from e
            if not values:
                raise UpstreamUnavailable("Embedding response had no values", status=resp.status_code)
            return np.asarray(values, dtype=np.float32)

        if _is_retryable(resp.status_code):
            raise _TransientEmbeddingError(f"HTTP {resp.status_code}", status=resp.status_code)
        raise UpstreamUnavailable(f"Embedding API failed: {_error_message(resp)}", status=resp.status_code)

    @staticmethod
    def _log_embed_retry(retry_state):
        current_app.logger.warning(
            f"gemini.embed: {retry_state.outcome.exception()}; retrying in "
            f"{retry_state.next_action.sleep:g}s (attempt {retry_state.attempt_number}/{EMBED_MAX_ATTEMPTS})"
        )

    def generate(self, prompt, system_instruction):
        """Single-turn generation. Returns the first candidate's first text part."""
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
        }

        try:
            resp = requests.post(
                f"{self.base_url}/models/{self.chat_model}:generateContent",
                headers=self._headers(),
                json=payload,
                timeout=self.chat_timeout,
            )
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"Generation API unreachable: {e.__class__.__name__}") from e

        if not resp.ok:
            raise UpstreamUnavailable(f"Generation API failed: {_error_message(resp)}", status=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise EmptyCompletion("Generation response was not JSON") from e

        text = _first_text_part(data)
        if not text:
            raise EmptyCompletion("No text found in AI response")
        return text


def _first_text_part(data):
    try:
        return data["candidates"][0]["content"]["parts"][0].get("text")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
