"""
Utility helpers used across oracle adapters and their callers.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from models.errors import OracleResponseError

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str | None) -> Dict[str, Any]:
    """
    Return the JSON object contained in an oracle answer.

    Accepts bare JSON, JSON inside a Markdown code fence, or JSON surrounded
    by prose (first ``{`` to last ``}``).
    """
    if not text or not text.strip():
        raise OracleResponseError("Oracle returned an empty response", raw=text)
    candidates = [text.strip()]
    fenced = _FENCE_PATTERN.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    raise OracleResponseError("Oracle response did not contain a JSON object", raw=text)
