"""
JSON extraction for model output.

Models frequently wrap structured answers in markdown code fences. This
module strips that wrapping, parses the remainder and checks that the
document metadata has the fields callers rely on.
"""

import json
import re
from typing import Any

from .errors import InvalidResponseStructure

_FENCE_OPEN = re.compile(r"```json\n?")
_FENCE_ANY = re.compile(r"```\n?")


def strip_code_fences(text: str) -> str:
    """
    Remove markdown code fences anywhere in the text.

    Example:
        ```json
        {"key": "value"}
        ```
    -> {"key": "value"}
    """
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_ANY.sub("", text)
    return text.strip()


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Parse fenced or bare JSON text into a dict.

    Raises:
        InvalidResponseStructure: If the text is not a JSON object
    """
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise InvalidResponseStructure(f"Invalid JSON response from API: {e}") from e

    if not isinstance(data, dict):
        raise InvalidResponseStructure(
            f"Invalid JSON response from API: expected an object, got {type(data).__name__}"
        )
    return data


def validate_document(data: dict[str, Any]) -> dict[str, Any]:
    """
    Check that parsed metadata has a tags list and a correspondent string.

    Raises:
        InvalidResponseStructure: If either field is missing or mistyped
    """
    if not isinstance(data.get("tags"), list) or not isinstance(data.get("correspondent"), str):
        raise InvalidResponseStructure(
            "Invalid response structure: missing tags array or correspondent string"
        )
    return data


def parse_document_response(text: str) -> tuple[dict[str, Any], str]:
    """
    Parse and validate document metadata from model output.

    Returns:
        Tuple of (document fields, cleaned JSON text)

    Raises:
        InvalidResponseStructure: If the output is not valid document JSON
    """
    cleaned = strip_code_fences(text)
    return validate_document(parse_json_object(cleaned)), cleaned
