"""
Structured-result extraction from free-form LLM text.

The parser never raises on malformed input: every failure degrades to
``None`` and is logged as a ``ParseError``.
"""

import json
import re
from typing import Any, Optional, Union

import json_repair

from orgmirror.core.exceptions import ParseError
from orgmirror.utils.block_lexer import BlockLexer
from orgmirror.utils.logger import logger

MAX_SAFE_INTEGER = 2**53 - 1

_OUTER_FENCE = re.compile(r"^```(?:json)?\s*\n([\s\S]*?)\n?```\s*$", re.IGNORECASE)


def _parse_int(literal: str) -> Union[int, str]:
    value = int(literal)
    if abs(value) > MAX_SAFE_INTEGER:
        # Kept as text so consumers with double-precision numbers see the exact value.
        return literal
    return value


def _loads(text: str, strict: bool = True) -> Any:
    parsed = json.loads(text, parse_int=_parse_int, strict=strict)
    if not isinstance(parsed, (dict, list)):
        raise ParseError(f"Expected a JSON object or array, got {type(parsed).__name__}")
    return parsed


def _strip_outer_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```suggestion"):
        return text
    match = _OUTER_FENCE.match(stripped)
    return match.group(1) if match else text


def repair_and_parse(text: Optional[str], lexer: Optional[BlockLexer] = None) -> Optional[Any]:
    """
    Parse ``text`` as JSON, repairing it where needed.

    Multi-line suggestion blocks and the mermaid diagram are swapped for
    placeholders before parsing and restored verbatim afterwards.

    Args:
        text: Raw LLM output expected to contain one JSON document.
        lexer: Optional lexer instance, mainly for tests.

    Returns:
        The parsed structure, or None when every strategy failed.
    """
    if not text or not text.strip():
        logger.error("Cannot parse an empty LLM response.")
        return None

    lexer = lexer or BlockLexer()
    processed, blocks = lexer.extract(_strip_outer_fence(text))
    if blocks:
        logger.debug(f"Extracted {len(blocks)} multi-line blocks before parsing.")

    parsed = None
    try:
        parsed = _loads(json_repair.repair_json(processed))
    except (ValueError, RecursionError, ParseError) as e:
        logger.warning(f"Error repairing and parsing JSON: {e}")
        try:
            parsed = _loads(processed)
        except (ValueError, ParseError) as e:
            logger.warning(f"Error parsing JSON: {e}")
            try:
                parsed = _loads(processed.replace("\\n", "\n"), strict=False)
            except (ValueError, ParseError) as e:
                logger.error(f"{ParseError.__name__}: unable to parse LLM response: {e}")
                return None

    result, restored = lexer.restore(parsed, blocks)
    if restored != len(blocks):
        logger.error(
            f"{ParseError.__name__}: re-injected {restored} of {len(blocks)} extracted blocks"
        )
    return result
