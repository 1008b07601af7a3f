"""Extraction of the JSON array embedded in a generative model's answer.

Model output is not guaranteed to be pure JSON: the array may sit between
prose, inside a code fence, or be cut off when the model hits its output
token limit. parse_event_array() finds the first top-level array and, when
it does not parse, recovers every fully closed element in front of the
truncation point.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

_FENCE = re.compile(r'```(?:json)?', re.IGNORECASE)
# An array opener directly followed by an object or by its own closer.
# Skips bracketed prose such as citation markers "[1]".
_ARRAY_START = re.compile(r'\[\s*[\{\]]')


class ParseStatus(str, Enum):
    CLEAN = 'clean'
    REPAIRED = 'repaired'
    FAILED = 'failed'


@dataclass
class ParseResult:
    status: ParseStatus
    items: List[Any] = field(default_factory=list)
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not ParseStatus.FAILED


def strip_code_fences(text: str) -> str:
    return _FENCE.sub('', text or '')


def _scan_array(text: str, start: int) -> tuple[Optional[int], Optional[int]]:
    """
    Walk the array opening at start.

    Returns:
        (end, last_complete): index of the matching "]" or None when the
        array is never closed, and the index just past the last element
        that closed at depth one
    """
    depth = 0
    in_string = False
    escaped = False
    last_complete = None

    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in '[{':
            depth += 1
        elif char in ']}':
            depth -= 1
            if depth == 0:
                return i, last_complete
            if depth == 1:
                last_complete = i + 1

    return None, last_complete


def parse_event_array(raw_text: str) -> ParseResult:
    """
    Parse the first top-level JSON array in raw_text.

    Args:
        raw_text: Model answer, possibly with prose and code fences

    Returns:
        ParseResult that is CLEAN when the array parsed as-is, REPAIRED when
        only the complete leading elements could be recovered, FAILED
        otherwise. Never raises.
    """
    text = strip_code_fences(raw_text)
    match = _ARRAY_START.search(text)
    if not match:
        return ParseResult(ParseStatus.FAILED, detail='no JSON array found')

    start = match.start()
    end, last_complete = _scan_array(text, start)

    if end is not None:
        try:
            parsed = json.loads(text[start:end + 1])
            if isinstance(parsed, list):
                return ParseResult(ParseStatus.CLEAN, parsed)
        except json.JSONDecodeError as e:
            logger.warning(f"JSON array did not parse, attempting repair: {e}")

    if last_complete is None:
        return ParseResult(ParseStatus.FAILED, detail='no complete array element')

    # Drop the partial tail and re-close the array
    repaired = text[start:last_complete] + ']'
    try:
        parsed = json.loads(repaired)
    except json.JSONDecodeError as e:
        return ParseResult(ParseStatus.FAILED, detail=f"repair failed: {e}")

    logger.info(f"Recovered {len(parsed)} complete elements from truncated JSON")
    return ParseResult(ParseStatus.REPAIRED, parsed)
