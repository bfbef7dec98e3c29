"""Best-effort structural extraction from provider text.

Knowledge providers answer in prose that usually, but not always, contains a
single JSON value. extract_structure() finds that value and applies a small
set of repair rules when the first parse fails.

Usage:
    from dossier.parsing import extract_structure

    data = extract_structure('Here you go:\\n```json\\n{"domain": "acme.com"}\\n```')
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from dossier.errors import ResponseParseError

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_CLOSERS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class RepairRule:
    """One documented text repair applied before re-parsing."""

    name: str
    pattern: re.Pattern
    replacement: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


# Applied in order; parsing is retried after each rule
REPAIR_RULES: tuple[RepairRule, ...] = (
    # \' is not a JSON escape
    RepairRule("backslash_apostrophe", re.compile(r"\\'"), "'"),
    # "key":\"value" -> "key":"value"
    RepairRule("escaped_quote_after_colon", re.compile(r'(":\s*)\\"'), r'\1"'),
    # "value\", -> "value",
    RepairRule("escaped_quote_before_delimiter", re.compile(r'\\"(\s*[,}\]])'), r'"\1'),
    # [1, 2,] -> [1, 2]
    RepairRule("trailing_comma", re.compile(r",(\s*[}\]])"), r"\1"),
)


def strip_code_fences(text: str) -> str:
    """Return the contents of the first fenced block, or the text unchanged."""
    match = _FENCE.search(text)
    return match.group(1) if match else text


def find_balanced(text: str) -> str:
    """Capture the first balanced JSON object or array in text.

    Scans from the first '{' or '[' and counts brackets, ignoring any that
    appear inside string literals (with backslash escapes honored).

    Raises:
        ResponseParseError: If there is no anchor or the structure never closes
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise ResponseParseError("No JSON object or array found in response")
    start = min(starts)

    stack: list[str] = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack.pop() != ch:
                raise ResponseParseError(f"Mismatched '{ch}' at offset {i}")
            if not stack:
                return text[start:i + 1]

    raise ResponseParseError("Unbalanced JSON structure (response truncated?)")


def extract_structure(text: str) -> Any:
    """Extract the JSON value embedded in a provider response.

    Args:
        text: Raw provider text, possibly with prose or code fences around
            the JSON value

    Returns:
        Parsed dict or list

    Raises:
        ResponseParseError: If nothing parseable can be recovered
    """
    if not text or not text.strip():
        raise ResponseParseError("Empty response")

    body = strip_code_fences(text.strip())
    try:
        candidate = find_balanced(body)
    except ResponseParseError:
        # Stray escaped quotes can hide the closing bracket from the scanner
        repaired_body = body
        for rule in REPAIR_RULES:
            repaired_body = rule.apply(repaired_body)
        candidate = find_balanced(repaired_body)

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        first_error = e

    repaired = candidate
    for rule in REPAIR_RULES:
        fixed = rule.apply(repaired)
        if fixed == repaired:
            continue
        repaired = fixed
        try:
            value = json.loads(repaired)
        except json.JSONDecodeError:
            continue
        logger.debug("Recovered JSON after repair rule '%s'", rule.name)
        return value

    logger.warning("Unrecoverable JSON (%s): %.200s", first_error, candidate)
    raise ResponseParseError(f"Invalid JSON in response: {first_error}")
