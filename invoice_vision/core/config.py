"""
Environment-driven configuration for the invoice extraction service.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError

PROVIDERS = ("gemini", "openai")
PDF_POLICIES = ("passthrough", "rasterize")
SCHEMA_VARIANTS = ("basic", "detailed")

API_KEY_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
}

TRUTHY = ("true", "1", "yes", "on")


@dataclass
class ExtractionConfig:
    provider: str = "gemini"
    api_key: Optional[str] = None
    model: str = "gemini-2.0-flash"
    api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    schema_variant: str = "detailed"
    pdf_policy: str = "passthrough"
    raster_width: int = 1600
    raster_dpi: int = 200
    max_attempts: int = 3
    backoff_base: float = 2.0
    request_timeout: float = 60.0
    temperature: float = 0.1
    max_output_tokens: int = 2500
    batch_concurrency: int = 4
    batch_max_files: int = 20
    cors_enabled: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ExtractionConfig":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Validated ExtractionConfig

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ

        provider = env.get("EXTRACTION_PROVIDER", "gemini").strip().lower()
        if provider not in PROVIDERS:
            raise ConfigurationError(
                "Invalid extraction provider.",
                f"EXTRACTION_PROVIDER must be one of {', '.join(PROVIDERS)}, got '{provider}'",
            )

        if provider == "openai":
            model = env.get("OPENAI_MODEL", "gpt-4o")
        else:
            model = env.get("GEMINI_MODEL", cls.model)

        config = cls(
            provider=provider,
            api_key=env.get(API_KEY_VARS[provider]) or None,
            model=model,
            api_base_url=env.get("GEMINI_API_URL", cls.api_base_url).rstrip("/"),
            schema_variant=env.get("INVOICE_SCHEMA", cls.schema_variant).strip().lower(),
            pdf_policy=env.get("PDF_POLICY", cls.pdf_policy).strip().lower(),
            raster_width=_read_int(env, "PDF_RASTER_WIDTH", cls.raster_width),
            raster_dpi=_read_int(env, "PDF_RASTER_DPI", cls.raster_dpi),
            max_attempts=_read_int(env, "EXTRACTION_MAX_ATTEMPTS", cls.max_attempts),
            backoff_base=_read_float(env, "EXTRACTION_BACKOFF_BASE", cls.backoff_base),
            request_timeout=_read_float(env, "EXTRACTION_TIMEOUT", cls.request_timeout),
            temperature=_read_float(env, "EXTRACTION_TEMPERATURE", cls.temperature),
            batch_concurrency=_read_int(env, "BATCH_CONCURRENCY", cls.batch_concurrency),
            batch_max_files=_read_int(env, "BATCH_MAX_FILES", cls.batch_max_files),
            cors_enabled=read_cors_enabled(env),
        )
        config.validate()
        return config

    def validate(self):
        if self.schema_variant not in SCHEMA_VARIANTS:
            raise ConfigurationError(
                "Invalid invoice schema.",
                f"INVOICE_SCHEMA must be one of {', '.join(SCHEMA_VARIANTS)}, got '{self.schema_variant}'",
            )
        if self.pdf_policy not in PDF_POLICIES:
            raise ConfigurationError(
                "Invalid PDF policy.",
                f"PDF_POLICY must be one of {', '.join(PDF_POLICIES)}, got '{self.pdf_policy}'",
            )
        for name in ("max_attempts", "batch_concurrency", "batch_max_files", "raster_width", "raster_dpi"):
            if getattr(self, name) < 1:
                raise ConfigurationError("Invalid configuration.", f"{name} must be at least 1")

    def require_api_key(self) -> str:
        """Return the provider API key or fail before any external call is made."""
        if not self.api_key:
            raise ConfigurationError(
                "API key is not configured on the server.",
                f"Set the {API_KEY_VARS[self.provider]} environment variable.",
            )
        return self.api_key


def read_cors_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Read CORS_ENABLED without loading or validating the rest of the configuration."""
    env = os.environ if environ is None else environ
    return env.get("CORS_ENABLED", "true").strip().lower() in TRUTHY


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError("Invalid configuration.", f"{name} must be an integer, got '{value}'")


def _read_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError("Invalid configuration.", f"{name} must be a number, got '{value}'")
