"""
Parsing of raw model output into JSON.
"""

import json
import logging
import re
from typing import Any, Optional

from .errors import ResponseParseError

LEADING_FENCE = re.compile(r"^\s*```(?:json)?[ \t]*\r?\n?", re.IGNORECASE)
TRAILING_FENCE = re.compile(r"\r?\n?[ \t]*```\s*$")


def _reject_constant(name: str):
    # NaN and Infinity would make the response body invalid JSON
    raise ValueError(f"Non-standard JSON constant: {name}")


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json (or bare ```) marker and a trailing ``` marker."""
    text = LEADING_FENCE.sub("", text, count=1)
    text = TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def parse_model_response(raw_text: Optional[str], logger: Optional[logging.Logger] = None) -> Any:
    """
    Parse the text returned by the model as JSON.

    The text is parsed directly first. If that fails, markdown code fences are
    stripped and the parse is retried once. The parsed value is returned as is.

    Args:
        raw_text: Text produced by the model
        logger: Logger for diagnostics

    Returns:
        The parsed JSON value

    Raises:
        ResponseParseError: If the text is not JSON even after fence stripping
    """
    logger = logger or logging.getLogger("invoice-vision")

    if raw_text is None:
        raise ResponseParseError("", "Model returned no text")

    try:
        return _loads(raw_text)
    except ValueError:
        pass

    stripped = strip_code_fences(raw_text)
    try:
        result = _loads(stripped)
    except ValueError as e:
        logger.error(f"Model output is not valid JSON: {e}")
        logger.debug(f"Raw model output: {raw_text}")
        raise ResponseParseError(raw_text, str(e))

    logger.warning("Model output was wrapped in markdown fences; stripped before parsing")
    return result
