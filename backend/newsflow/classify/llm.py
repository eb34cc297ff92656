from __future__ import annotations

import logging
import re

from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_REJECT_MARKER = "不值得"

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


class FilterResult(BaseModel):
    """Filter-stage verdict: is the article worth reading, and why."""

    worth: bool = False
    reason: str = ""

    @field_validator("reason", mode="before")
    @classmethod
    def _null_reason(cls, value):
        return "" if value is None else value


def _strip_fence(text: str) -> str:
    match = _FENCE_RE.match(text.strip())
    return match.group(1) if match else text


def parse_filter_reply(reply: str, reject_marker: str = DEFAULT_REJECT_MARKER) -> FilterResult:
    """Decode the filter model's reply. Never raises.

    A JSON object ``{"worth": bool, "reason": str}`` is taken as-is. Anything
    else is read as free text: it counts as not worth reading if it contains
    the reject marker or ``no`` (case-insensitive), with an empty reason.
    """
    if not isinstance(reply, str):
        reply = ""
    try:
        return FilterResult.model_validate_json(_strip_fence(reply))
    except ValidationError:
        pass

    lowered = reply.lower()
    marker = (reject_marker or "").lower()
    rejected = (bool(marker) and marker in lowered) or "no" in lowered
    logger.debug("Filter reply is not JSON, heuristic worth=%s: %r", not rejected, reply[:80])
    return FilterResult(worth=not rejected, reason="")
