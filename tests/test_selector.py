"""Tests for ranked-time slot matching."""

from datetime import time

from dropsnag.models import RequestedTime
from dropsnag.selector import SlotSelector


class TestSlotSelector:
    def setup_method(self):
        self.selector = SlotSelector()

    def test_exact_time_and_type_match(self, slot_factory):
        slots = [
            slot_factory(18, 30),
            slot_factory(19, 0, "Bar"),
            slot_factory(19, 0, "Dining Room"),
        ]

        result = self.selector.match(
            slots, RequestedTime(time=time(19, 0), table_type="Dining Room")
        )

        assert result is slots[2]

    def test_table_type_is_case_insensitive(self, slot_factory):
        slots = [slot_factory(19, 0, "Dining Room")]

        result = self.selector.match(
            slots, RequestedTime(time=time(19, 0), table_type="dining ROOM")
        )

        assert result is slots[0]

    def test_no_table_type_matches_any(self, slot_factory):
        slots = [slot_factory(19, 0, "Patio"), slot_factory(19, 0, "Bar")]

        result = self.selector.match(slots, RequestedTime(time=time(19, 0)))

        assert result is slots[0]

    def test_minute_must_match_exactly(self, slot_factory):
        slots = [slot_factory(19, 15), slot_factory(18, 0)]

        assert self.selector.match(slots, RequestedTime(time=time(19, 0))) is None

    def test_wrong_table_type_does_not_match(self, slot_factory):
        slots = [slot_factory(19, 0, "Bar")]

        result = self.selector.match(
            slots, RequestedTime(time=time(19, 0), table_type="Dining Room")
        )

        assert result is None

    def test_candidates_follow_priority_and_skip_unmatched(self, slot_factory):
        slots = [slot_factory(21, 0, "Bar"), slot_factory(19, 30, "Patio")]
        ranked = [
            RequestedTime(time=time(19, 0)),  # no slot
            RequestedTime(time=time(19, 30)),
            RequestedTime(time=time(21, 0), table_type="bar"),
        ]

        result = list(self.selector.candidates(slots, ranked))

        assert [(p, s.table_type) for p, _, s in result] == [(2, "Patio"), (3, "Bar")]

    def test_candidates_empty_slots(self):
        ranked = [RequestedTime(time=time(19, 0))]

        assert list(self.selector.candidates([], ranked)) == []
