"""Normalization of raw model replies into analysis results.

Model output format is not guaranteed, so parsing never raises: anything
that is not a JSON object becomes an unstructured-text result.
"""

import json
import logging
import re
from typing import Any

from op_monitor.constants import UNPARSED_ELLIPSIS, UNPARSED_SUMMARY_CHARS
from op_monitor.models import AnalysisResult, utc_now

logger = logging.getLogger(__name__)

# Reasoning models embed chain-of-thought in the content field.
# Order matters: try the most specific patterns first.
_REASONING_PATTERNS = [
    # <think>...</think>answer
    re.compile(r"<think>[\s\S]*?</think>\s*", re.IGNORECASE),
    # Implicit opening tag: reasoning...</think>answer
    re.compile(r"^[\s\S]*?</think>\s*", re.IGNORECASE),
    # <reasoning>...</reasoning>answer
    re.compile(r"<reasoning>[\s\S]*?</reasoning>\s*", re.IGNORECASE),
]

_CODE_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


def strip_reasoning_tokens(text: str) -> str:
    """Strip reasoning/chain-of-thought tokens from a model reply.

    Returns the original text if no reasoning tokens are found or if
    stripping would leave nothing.
    """
    if not text:
        return text

    for pattern in _REASONING_PATTERNS:
        stripped = pattern.sub("", text).strip()
        if stripped and stripped != text.strip():
            logger.debug(f"Stripped reasoning tokens ({len(text)} → {len(stripped)} chars)")
            return stripped

    return text


def _load_object(candidate: str) -> dict[str, Any] | None:
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def unstructured_result(content: str) -> AnalysisResult:
    """Wrap free text as an analysis result."""
    summary = content[:UNPARSED_SUMMARY_CHARS]
    if len(content) > UNPARSED_SUMMARY_CHARS:
        summary += UNPARSED_ELLIPSIS
    return {
        "summary": summary,
        "fullContent": content,
        "parsed": False,
        "timestamp": utc_now().isoformat(),
    }


def parse_response(content: str) -> AnalysisResult:
    """Parse a raw model reply.

    Tries a strict JSON parse of the reply, then of a fenced code block
    inside it. A JSON object is returned as-is; anything else is wrapped
    with ``unstructured_result``.
    """
    content = content or ""
    answer = strip_reasoning_tokens(content).strip()

    parsed = _load_object(answer)
    if parsed is None:
        block = _CODE_BLOCK.search(answer)
        if block:
            parsed = _load_object(block.group(1).strip())
            if parsed is not None:
                logger.debug("Extracted JSON from markdown code block")

    if parsed is not None:
        return parsed

    logger.debug(f"Model reply is not a JSON object ({len(content)} chars)")
    return unstructured_result(content)
