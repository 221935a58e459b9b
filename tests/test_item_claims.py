# tests/test_item_claims.py

from types import SimpleNamespace

import pytest

from rsvp_manager.models.rsvp import Attendance, Rsvp
from rsvp_manager.services.item_claims import ItemClaims, coerce_item_list, resolve_item_claims


def _rsvp(items=None, other="", **extra):
    return {"items_bringing": items if items is not None else [], "other_items": other, **extra}


def test_claimed_items_leave_unclaimed_list():
    result = resolve_item_claims(
        ["Chips", "Soda", "Plates"],
        [_rsvp(["Chips"]), _rsvp(["Plates", "Plates"])],
    )

    assert result.unclaimed == ["Soda"]
    assert result.claimed == ["Chips", "Plates"]
    assert result.other_items == []


def test_no_needed_items_still_reports_claims_and_other_items():
    result = resolve_item_claims(
        [],
        [_rsvp(["Ice"], "napkins"), _rsvp(["Cups"], "  cake  ")],
    )

    assert result.unclaimed == []
    assert result.claimed == ["Ice", "Cups"]
    assert result.other_items == ["napkins", "cake"]


def test_whitespace_other_items_contribute_nothing():
    result = resolve_item_claims(["Chips"], [_rsvp([], "  "), _rsvp([], "\n\t")])

    assert result.other_items == []
    assert result.unclaimed == ["Chips"]


def test_not_attending_rsvp_still_claims_items():
    declined = Rsvp(event_id=1, name="Sam", attending=Attendance.NO, items_bringing=["Plates"])

    result = resolve_item_claims(["Chips", "Plates"], [declined])

    assert result.claimed == ["Plates"]
    assert result.unclaimed == ["Chips"]


def test_other_item_matching_a_needed_item_is_not_a_claim():
    result = resolve_item_claims(["Chips", "Soda"], [_rsvp([], "Soda")])

    assert result.unclaimed == ["Chips", "Soda"]
    assert result.claimed == []
    assert result.other_items == ["Soda"]


def test_unclaimed_keeps_needed_items_order():
    needed = ["Plates", "Chips", "Soda", "Ice", "Cups"]
    result = resolve_item_claims(needed, [_rsvp(["Ice"]), _rsvp(["Plates"])])

    assert result.unclaimed == ["Chips", "Soda", "Cups"]


def test_duplicates_collapse_in_first_seen_order():
    result = resolve_item_claims(
        ["A"],
        [_rsvp(["B", "A"], "cake"), _rsvp(["A", "B", "C"], "cake"), _rsvp([], " cake ")],
    )

    assert result.claimed == ["B", "A", "C"]
    assert result.other_items == ["cake"]


def test_partition_of_needed_items():
    needed = ["Chips", "Soda", "Plates", "Cups"]
    rsvps = [_rsvp(["Soda", "Balloons"]), _rsvp(["Cups"])]

    result = resolve_item_claims(needed, rsvps)
    claimed_needed = [i for i in needed if i in result.claimed]

    assert sorted(result.unclaimed + claimed_needed) == sorted(needed)
    assert not set(result.unclaimed) & set(result.claimed)


def test_running_twice_gives_same_answer():
    needed = ["Chips", "Soda"]
    rsvps = [_rsvp(["Chips"], "dip")]

    assert resolve_item_claims(needed, rsvps) == resolve_item_claims(needed, rsvps)


def test_exclude_drops_one_rsvp():
    rsvps = [
        SimpleNamespace(id=1, items_bringing=["Chips"], other_items=""),
        SimpleNamespace(id=2, items_bringing=["Soda"], other_items="dip"),
    ]

    result = resolve_item_claims(["Chips", "Soda"], rsvps, exclude=2)

    assert result.unclaimed == ["Soda"]
    assert result.claimed == ["Chips"]
    assert result.other_items == []


@pytest.mark.parametrize(
    "raw",
    [None, "", "not json", '{"a": 1}', 42, {"x": ["Chips"]}, b"\xff\xfe"],
)
def test_malformed_item_lists_become_empty(raw):
    assert coerce_item_list(raw) == []


def test_legacy_json_string_lists_are_read():
    assert coerce_item_list('["Chips", "Soda"]') == ["Chips", "Soda"]
    assert coerce_item_list(["Chips", 3, None, "Soda"]) == ["Chips", "Soda"]


def test_malformed_records_do_not_hide_other_claims():
    class Broken:
        @property
        def items_bringing(self):
            raise RuntimeError("corrupt row")

    rsvps = [
        _rsvp("this is not json"),
        _rsvp(None, None),
        Broken(),
        _rsvp('["Soda"]', 5),
    ]

    result = resolve_item_claims('["Chips", "Soda"]', rsvps)

    assert result.unclaimed == ["Chips"]
    assert result.claimed == ["Soda"]
    assert result.other_items == []


def test_malformed_needed_items_and_missing_rsvps():
    assert resolve_item_claims(None, None) == ItemClaims()


@pytest.mark.parametrize("rsvps", [5, "Chips", {"items_bringing": ["A"]}, object()])
def test_non_list_rsvps_count_as_none(rsvps):
    assert resolve_item_claims(["A"], rsvps) == ItemClaims(unclaimed=["A"])


def test_as_dict_shape():
    result = resolve_item_claims(["Chips"], [_rsvp(["Chips"], "dip")])

    assert result.as_dict() == {"unclaimed": [], "claimed": ["Chips"], "other_items": ["dip"]}
