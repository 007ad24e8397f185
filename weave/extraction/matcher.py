"""
Match model-claimed titles to the user's stored artifacts.

The model paraphrases titles ("Dispossessed" for "The Dispossessed"), so
matching is case-insensitive bidirectional containment. Containment only
counts when the contained title has at least MIN_CONTAINED_CHARS non-space
characters; shorter titles must match exactly, otherwise a stored "It" would
attach to nearly every claim.
"""

from typing import Any, Dict, Iterable, List, Sequence

from weave.extraction.filters import filter_by_confidence
from weave.extraction.schemas import DetectedPattern, RawPattern


MIN_CONTAINED_CHARS = 4
MIN_ARTIFACTS_PER_PATTERN = 2

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _normalize_title(title: str) -> str:
    return " ".join((title or "").lower().split())


def titles_match(stored: str, claimed: str) -> bool:
    """True if a stored title and a claimed title refer to the same work."""
    a = _normalize_title(stored)
    b = _normalize_title(claimed)
    if not a or not b:
        return False
    if a == b:
        return True
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if len(shorter.replace(" ", "")) < MIN_CONTAINED_CHARS:
        return False
    return shorter in longer


def match_artifacts(claimed_titles: Sequence[str], stored_artifacts: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Return the stored artifacts matched by any claimed title.

    Artifacts come back in store order, each at most once.
    """
    matched = []
    for artifact in stored_artifacts:
        title = artifact.get("title") or ""
        if any(titles_match(title, claimed) for claimed in claimed_titles):
            matched.append(artifact)
    return matched


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _utf16_code_units(text: str) -> Iterable[int]:
    data = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _distinct_works(artifacts: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    works = []
    for artifact in artifacts:
        key = _normalize_title(artifact.get("title") or "")
        if key not in seen:
            seen.add(key)
            works.append(artifact)
    return works


def pattern_hash(pattern: str, titles: Iterable[str]) -> str:
    """
    Stable id for a pattern: `pattern-<base36>`.

    32-bit rolling hash (h = h*31 + code unit) over the lowercased pattern text
    followed by the lowercased titles, sorted and joined with ",". Title order
    does not affect the result.
    """
    content = (pattern or "").lower() + ",".join(sorted(t.lower() for t in titles))
    h = 0
    for unit in _utf16_code_units(content):
        h = _to_int32((h << 5) - h + unit)
    return f"pattern-{_base36(abs(h))}"


def build_patterns(
    raw_patterns: Iterable[RawPattern],
    stored_artifacts: Sequence[Dict[str, Any]],
    min_confidence: float,
) -> List[DetectedPattern]:
    """
    Turn validated model patterns into DetectedPatterns tied to stored rows.

    Drops patterns below `min_confidence`, patterns claiming fewer than two
    titles, and patterns that match fewer than two distinct stored works (rows
    sharing a normalised title count once, keeping the first in store order).
    Patterns that hash to an id already produced are dropped as duplicates.
    """
    results: List[DetectedPattern] = []
    seen_ids = set()

    for raw in filter_by_confidence(raw_patterns, min_confidence):
        if len(raw.artifact_titles) < MIN_ARTIFACTS_PER_PATTERN:
            continue

        matched = _distinct_works(match_artifacts(raw.artifact_titles, stored_artifacts))
        if len(matched) < MIN_ARTIFACTS_PER_PATTERN:
            continue

        titles = [a["title"] for a in matched]
        pattern_id = pattern_hash(raw.pattern, titles)
        if pattern_id in seen_ids:
            continue
        seen_ids.add(pattern_id)

        results.append(DetectedPattern(
            id=pattern_id,
            pattern=raw.pattern,
            description=raw.description or raw.pattern,
            artifact_ids=[str(a["id"]) for a in matched],
            artifact_titles=titles,
            confidence=raw.confidence,
            pattern_type=raw.pattern_type,
        ))

    return results
