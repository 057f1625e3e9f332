"""
Helpers for reading JSON out of chat model replies.

Models asked for JSON still sometimes wrap it in markdown fences or add a
sentence around the fence. These helpers strip that and decode the object.
"""

import json
import re
from typing import Any

from stocklens.utils.logging import get_logger

log = get_logger(__name__)

# First fenced block, optionally tagged ```json
_FENCE = re.compile(r"```(?:json)?[ \t]*\n?(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json(response: str) -> str:
    """
    Return the JSON text of a model reply (not decoded).

    Takes the contents of the first fenced code block if there is one,
    otherwise the whole reply.

    Raises:
        ValueError: If the reply is empty
    """
    if not response or not response.strip():
        raise ValueError("Empty response from LLM")

    match = _FENCE.search(response)
    if match:
        return match.group(1).strip()
    return response.strip()


def parse_json_object(response: str, context: str = "LLM response") -> dict[str, Any]:
    """
    Decode a model reply that must be a JSON object.

    Args:
        response: Raw model reply
        context: Used in log events and error messages

    Raises:
        ValueError: If the reply is empty, not valid JSON, or not an object
    """
    text = extract_json(response)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        log.warning(
            "json_parse_failed",
            context=context,
            error=str(e),
            response_preview=response[:500],
        )
        raise ValueError(f"Failed to parse JSON from {context}: {e}") from e

    if not isinstance(data, dict):
        log.warning("json_not_an_object", context=context, payload_type=type(data).__name__)
        raise ValueError(f"Expected a JSON object in {context}, got {type(data).__name__}")
    return data
