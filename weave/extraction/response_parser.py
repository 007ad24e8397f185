"""
Tolerant JSON parsing for model output.

Models are asked for bare JSON but often wrap it in ```json fences or add a
sentence before or after. Parsing tries the fence-stripped text strictly
first, then falls back to scanning for balanced {...} spans. The outcome is a
ParseResult rather than an exception, so callers decide what a failed parse
means for them.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional


MAX_NESTING_DEPTH = 32

_OPENING_FENCE = re.compile(r"^```[\w-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?[ \t]*```$")


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing model output: either `data` or an `error` reason."""
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Dict[str, Any]) -> "ParseResult":
        return cls(data=data)

    @classmethod
    def failure(cls, reason: str) -> "ParseResult":
        return cls(error=reason)


def strip_code_fence(text: str) -> str:
    """Remove a leading ``` / ```json line and a trailing ``` if present."""
    s = (text or "").strip()
    if s.startswith("```"):
        s = _OPENING_FENCE.sub("", s, count=1)
        s = _CLOSING_FENCE.sub("", s, count=1)
    return s.strip()


def iter_json_object_spans(text: str, max_depth: int = MAX_NESTING_DEPTH) -> Iterator[str]:
    """
    Yield balanced {...} spans in order of their opening brace.

    Brackets inside JSON strings are ignored. A candidate is abandoned when it
    nests deeper than `max_depth`, closes with the wrong bracket, or never
    closes.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
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
            elif ch in "{[":
                depth += 1
                if depth > max_depth:
                    break
            elif ch in "}]":
                depth -= 1
                if depth == 0:
                    if ch == "}":
                        yield text[start:i + 1]
                    break
        start = text.find("{", start + 1)


def find_json_object(text: str, max_depth: int = MAX_NESTING_DEPTH) -> Optional[str]:
    """Return the first balanced {...} span in `text`, or None."""
    return next(iter_json_object_spans(text, max_depth), None)


def parse_model_json(text: Optional[str], max_depth: int = MAX_NESTING_DEPTH) -> ParseResult:
    """
    Parse a JSON object out of raw model output. Never raises.

    Returns:
        ParseResult.success(dict) for the first JSON object found, otherwise
        ParseResult.failure with a short reason.
    """
    cleaned = strip_code_fence(text or "")
    if not cleaned:
        return ParseResult.failure("empty response")

    try:
        data = json.loads(cleaned)
    except ValueError:
        pass
    else:
        if isinstance(data, dict):
            return ParseResult.success(data)
        return ParseResult.failure(f"expected a JSON object, got {type(data).__name__}")

    for span in iter_json_object_spans(cleaned, max_depth):
        try:
            candidate = json.loads(span)
        except ValueError:
            continue
        if isinstance(candidate, dict):
            return ParseResult.success(candidate)

    return ParseResult.failure("no JSON object found")
