"""
Vision model client with retry and exponential backoff.

Two backends are available: the Gemini `generateContent` REST endpoint called
with requests, and OpenAI chat completions through the official SDK.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import openai
import requests
from openai import OpenAI

from .config import ExtractionConfig
from .errors import ConfigurationError, ExternalCallError, ExternalCallExhausted, TransientCallError
from .models import DocumentPayload
from .schema import build_prompt, build_response_schema

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class GeminiBackend:
    """
    Calls the Gemini REST API directly.

    Each call opens its own session and closes it before returning.
    """

    def __init__(self, config: ExtractionConfig,
                 session_factory: Optional[Callable[[], requests.Session]] = None):
        self.api_key = config.require_api_key()
        self.model = config.model
        self.base_url = config.api_base_url
        self.timeout = config.request_timeout
        self.temperature = config.temperature
        self.response_schema = build_response_schema(config.schema_variant)
        self.session_factory = session_factory or requests.Session

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_request(self, prompt: str, payload: DocumentPayload) -> Dict[str, Any]:
        return {
            "contents": [{
                "parts": [
                    {"text": prompt},
                    {"inlineData": {"mimeType": payload.mime_type, "data": payload.to_base64()}},
                ]
            }],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": self.response_schema,
                "temperature": self.temperature,
            },
        }

    def generate(self, prompt: str, payload: DocumentPayload) -> str:
        session = self.session_factory()
        try:
            response = session.post(
                self.endpoint,
                json=self.build_request(prompt, payload),
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise TransientCallError(f"Gemini request failed: {e}")
        except requests.exceptions.RequestException as e:
            raise ExternalCallError("Failed to call the extraction model.", str(e))
        finally:
            session.close()

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientCallError(f"Gemini returned HTTP {response.status_code}: {response.text[:500]}")
        if response.status_code >= 400:
            raise ExternalCallError(
                "The extraction model rejected the request.",
                f"HTTP {response.status_code}: {response.text[:500]}",
            )

        try:
            data = response.json()
        except ValueError:
            raise TransientCallError("Gemini returned a non-JSON response body")

        return self.extract_text(data)

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        """Pull the text parts out of candidates[0].content.parts."""
        try:
            parts = data["candidates"][0]["content"]["parts"]
            texts = [part["text"] for part in parts if "text" in part]
        except (KeyError, IndexError, TypeError):
            reason = None
            if isinstance(data, dict) and data.get("candidates"):
                reason = data["candidates"][0].get("finishReason") if isinstance(data["candidates"][0], dict) else None
            raise TransientCallError(f"Gemini response is missing candidate text (finishReason={reason})")
        if not texts:
            raise TransientCallError("Gemini response has no text parts")
        return "".join(texts)

    def close(self):
        """Nothing to release; sessions are closed after each call."""


class OpenAIBackend:
    """Calls an OpenAI vision model through chat completions."""

    RETRYABLE_ERRORS = (
        openai.RateLimitError,
        openai.APITimeoutError,
        openai.APIConnectionError,
        openai.InternalServerError,
    )

    def __init__(self, config: ExtractionConfig, client: Optional[OpenAI] = None):
        self.model = config.model
        self.temperature = config.temperature
        self.max_tokens = config.max_output_tokens
        self.client = client or OpenAI(api_key=config.require_api_key(), timeout=config.request_timeout,
                                       max_retries=0)

    def close(self):
        self.client.close()

    def generate(self, prompt: str, payload: DocumentPayload) -> str:
        if not payload.mime_type.startswith("image/"):
            raise ConfigurationError(
                "The OpenAI provider only accepts images.",
                "Set PDF_POLICY=rasterize to send PDFs to OpenAI models.",
            )

        content = [
            {"type": "text", "text": prompt},
            {
                "type": "image_url",
                "image_url": {
                    "url": f"data:{payload.mime_type};base64,{payload.to_base64()}",
                    "detail": "high",
                },
            },
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                response_format={"type": "json_object"},
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except self.RETRYABLE_ERRORS as e:
            raise TransientCallError(f"OpenAI request failed: {e}")
        except openai.OpenAIError as e:
            raise ExternalCallError("The extraction model rejected the request.", str(e))

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError):
            text = None
        if not text:
            raise TransientCallError("OpenAI response is missing message content")
        return text.strip()


class ExtractionClient:
    """
    Sends a document to the vision model and returns its raw text output.

    A failed attempt n waits backoff_base ** n seconds before the next one.
    Only transient failures are retried; anything else is raised immediately.
    """

    def __init__(self, config: ExtractionConfig, backend: Optional[Any] = None,
                 logger: Optional[logging.Logger] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        self.config = config
        self.logger = logger or logging.getLogger("invoice-vision")
        self.prompt = build_prompt(config.schema_variant)
        self.max_attempts = config.max_attempts
        self.backoff_base = config.backoff_base
        self.sleep = sleep or time.sleep
        self.backend = backend or self._create_backend(config)

    @staticmethod
    def _create_backend(config: ExtractionConfig):
        if config.provider == "openai":
            return OpenAIBackend(config)
        return GeminiBackend(config)

    def generate(self, payload: DocumentPayload) -> str:
        """
        Run the extraction call with retries.

        Args:
            payload: Normalized document

        Returns:
            Raw text produced by the model

        Raises:
            ExternalCallError: On a non-retryable failure
            ExternalCallExhausted: When every attempt failed
        """
        last_error: Optional[TransientCallError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                self.logger.info(f"Calling {self.config.provider} model {self.config.model} "
                                 f"(attempt {attempt}/{self.max_attempts})")
                text = self.backend.generate(self.prompt, payload)
                self.logger.debug(f"Model returned {len(text)} characters")
                return text
            except TransientCallError as e:
                last_error = e
                if attempt == self.max_attempts:
                    self.logger.error(f"Attempt {attempt} failed: {e}")
                    break
                wait = self.backoff_base ** attempt
                self.logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {wait:g}s")
                self.sleep(wait)

        raise ExternalCallExhausted(self.max_attempts, last_error)

    def close(self):
        """Release the backend's connections."""
        close = getattr(self.backend, "close", None)
        if close is not None:
            close()
