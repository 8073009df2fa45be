"""Pull assistant text out of provider envelopes and recover scripts from it.

``parse_structured`` is a best-effort repair, not a JSON parser. It strips
code fences, tries a strict parse, then falls back to the first balanced
object or array in the text that holds a non-empty script. Anything it
cannot recover fails closed with ``StructuralError``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .errors import StructuralError
from .types import ScriptTurn

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json|JSON)?")
_FRAGMENT_START = re.compile(r"[\[{]")
_SCRIPT_TURNS = TypeAdapter(list[ScriptTurn])
_decoder = json.JSONDecoder()


def extract_chat_text(payload: Any) -> str:
    """``choices[0].message.content`` of a chat-completions envelope."""

    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


def extract_prompt_text(payload: Any) -> str:
    """``candidates[0].content.parts[0].text`` of a generateContent envelope."""

    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    return text if isinstance(text, str) else ""


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text).strip()


def parse_structured(text: str) -> list[ScriptTurn]:
    cleaned = strip_code_fences(text)

    try:
        document = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Strict JSON parse failed; snippet=%r", cleaned[:100])
    else:
        return _script_turns(document)

    turns = _first_script_fragment(cleaned)
    if turns is None:
        raise StructuralError()
    logger.info("Recovered structured output from embedded fragment")
    return turns


def _first_script_fragment(text: str) -> list[ScriptTurn] | None:
    # A citation like "[1]" or an empty "[]" decodes but is not a script.
    for match in _FRAGMENT_START.finditer(text):
        try:
            fragment, _end = _decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        turns = _coerce_turns(fragment)
        if turns:
            return turns
    return None


def _coerce_turns(document: Any) -> list[ScriptTurn] | None:
    if isinstance(document, dict) and "script" in document:
        document = document["script"]

    if not isinstance(document, list):
        return None

    try:
        return _SCRIPT_TURNS.validate_python(document)
    except ValidationError:
        return None


def _script_turns(document: Any) -> list[ScriptTurn]:
    turns = _coerce_turns(document)
    if turns is None:
        logger.warning("Script output did not match the expected shape")
        raise StructuralError()
    return turns
