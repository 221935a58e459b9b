from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemClaims:
    """
    Who-brings-what summary for one event.

    - unclaimed: needed items nobody has put in items_bringing (needed_items order)
    - claimed: every string found in any items_bringing, first-seen order, no duplicates
    - other_items: trimmed, non-empty free-text other_items, first-seen order, no duplicates
    """
    unclaimed: List[str] = field(default_factory=list)
    claimed: List[str] = field(default_factory=list)
    other_items: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, List[str]]:
        return {
            "unclaimed": list(self.unclaimed),
            "claimed": list(self.claimed),
            "other_items": list(self.other_items),
        }


def coerce_item_list(raw: Any) -> List[str]:
    """
    Normalize a stored item list into list[str].

    Accepts:
      - list/tuple of strings
      - a JSON-encoded array (legacy rows stored items_bringing as text)
    Anything else (None, bad JSON, a JSON object, non-string entries) becomes [] or is skipped.
    """
    if raw is None:
        return []

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return []

    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            return []
        try:
            raw = json.loads(s)
        except ValueError:
            return []

    if not isinstance(raw, (list, tuple)):
        return []

    return [x for x in raw if isinstance(x, str)]


def _coerce_text(raw: Any) -> str:
    if isinstance(raw, str):
        return raw.strip()
    return ""


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def resolve_item_claims(
    needed_items: Any,
    rsvps: Any,
    *,
    exclude: Optional[Any] = None,
) -> ItemClaims:
    """
    Compute unclaimed / claimed / other items for an event.

    `rsvps` is a list or tuple of Rsvp rows or plain dicts exposing items_bringing and other_items.
    `exclude` (an RSVP id) drops that RSVP from the computation, so an attendee editing
    their own response still sees their items as available.

    Never raises: a malformed list degrades to [] for that record only.
    Attendance is intentionally not consulted; a "no" RSVP that lists items still claims them.
    """
    needed: Sequence[str] = coerce_item_list(needed_items)
    records: Sequence[Any] = rsvps if isinstance(rsvps, (list, tuple)) else ()

    claimed: Dict[str, None] = {}
    others: Dict[str, None] = {}

    for rsvp in records:
        try:
            if exclude is not None and _field(rsvp, "id") == exclude:
                continue

            for item in coerce_item_list(_field(rsvp, "items_bringing")):
                claimed.setdefault(item, None)

            other = _coerce_text(_field(rsvp, "other_items"))
            if other:
                others.setdefault(other, None)
        except Exception:
            # one bad record must not hide everyone else's claims
            logger.warning("Skipping unreadable RSVP while resolving item claims", exc_info=True)
            continue

    unclaimed = [item for item in needed if item not in claimed]

    return ItemClaims(
        unclaimed=unclaimed,
        claimed=list(claimed),
        other_items=list(others),
    )
