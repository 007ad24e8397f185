"""
Confidence filtering and per-record validation for extracted records.
"""

from typing import Any, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from weave.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


def confidence_of(record: Any) -> Optional[float]:
    """Read a numeric confidence from a dict or a model, or None."""
    if isinstance(record, dict):
        value = record.get("confidence")
    else:
        value = getattr(record, "confidence", None)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def filter_by_confidence(
    records: Iterable[T],
    threshold: float,
    keep_missing: bool = False,
) -> List[T]:
    """
    Keep records whose confidence is >= threshold, in their original order.

    Args:
        records: Dicts or models with a "confidence" value
        threshold: Minimum confidence (inclusive)
        keep_missing: Keep records that carry no confidence at all

    Returns:
        Filtered list (a subset of the input)
    """
    kept = []
    for record in records:
        confidence = confidence_of(record)
        if confidence is None:
            if keep_missing:
                kept.append(record)
            continue
        if confidence >= threshold:
            kept.append(record)
    return kept


def validate_records(items: Any, model: Type[M], overrides: Optional[dict] = None) -> List[M]:
    """
    Validate raw dicts against `model`, silently dropping invalid ones.

    Args:
        items: Raw value from parsed model output (anything but a list yields [])
        model: Pydantic model to validate against
        overrides: Keys forced onto every record, replacing what it provides
    """
    if not isinstance(items, list):
        return []

    valid = []
    for item in items:
        if not isinstance(item, dict):
            continue
        data = {**item, **overrides} if overrides else item
        try:
            valid.append(model.model_validate(data))
        except ValidationError as e:
            logger.debug("Dropping invalid %s: %s", model.__name__, e.errors()[:1])
    return valid
