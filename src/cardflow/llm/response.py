"""Cleaning and decoding of free-form service output."""
import json
import re
from dataclasses import dataclass
from typing import Any, Union

from .models import ExtractionFailure, FailureReason

FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\n?(.*?)\n?[ \t]*```$", re.DOTALL)
MARKUP_RE = re.compile(r"^<\s*[!?a-zA-Z]")


@dataclass(frozen=True)
class DecodedResponse:
    """JSON value decoded from a service response."""
    data: Any
    repaired: bool = False


def strip_code_fence(text: str) -> str:
    """Remove an enclosing ```/```json fence, keeping its content."""
    match = FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def looks_like_markup(text: str) -> bool:
    """True when the text opens with an HTML/XML tag (an error page, not data)."""
    return bool(MARKUP_RE.match(text))


def repair_json_text(text: str) -> str:
    """
    Fix the usual model slips: smart quotes, trailing commas, surrounding prose.

    Best effort only: the substitutions are not string-aware, so a value
    such as "A, }" or one containing curly quotes is rewritten too.
    """
    cleaned = text.replace("“", '"').replace("”", '"')
    cleaned = re.sub(r",\s*([\]}])", r"\1", cleaned)

    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]
    return cleaned


def decode_response(text: str) -> Union[DecodedResponse, ExtractionFailure]:
    """
    Decode raw service output into a JSON value.

    Trims whitespace and code fences, rejects markup, then parses JSON with
    one repair attempt.

    Returns:
        DecodedResponse, or ExtractionFailure with INVALID_RESPONSE_FORMAT
        or MALFORMED_JSON
    """
    cleaned = strip_code_fence((text or "").strip())

    if looks_like_markup(cleaned):
        return ExtractionFailure(
            FailureReason.INVALID_RESPONSE_FORMAT,
            f"service returned markup instead of JSON: {cleaned[:60]!r}",
        )

    try:
        return DecodedResponse(json.loads(cleaned))
    except json.JSONDecodeError as first_error:
        try:
            return DecodedResponse(json.loads(repair_json_text(cleaned), strict=False), repaired=True)
        except json.JSONDecodeError:
            return ExtractionFailure(FailureReason.MALFORMED_JSON, str(first_error))
