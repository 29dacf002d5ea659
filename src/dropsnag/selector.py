"""Slot matching for priority-ordered ranked times."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from dropsnag.models import RequestedTime, Slot


class SlotSelector:
    """
    Matches a submitter's ranked times against discovered slots.

    A slot matches a ranked time when its hour and minute are equal and
    its table type equals the requested one ignoring case. A ranked time
    without a table type matches any table type.
    """

    @staticmethod
    def matches(slot: Slot, wanted: RequestedTime) -> bool:
        if slot.date_time.hour != wanted.time.hour:
            return False
        if slot.date_time.minute != wanted.time.minute:
            return False
        if wanted.table_type is None:
            return True
        return slot.table_type.lower() == wanted.table_type.lower()

    def match(self, slots: Iterable[Slot], wanted: RequestedTime) -> Slot | None:
        """Return the first slot matching one ranked time, or None."""
        return next((s for s in slots if self.matches(s, wanted)), None)

    def candidates(
        self, slots: Sequence[Slot], ranked_times: Sequence[RequestedTime]
    ) -> Iterator[tuple[int, RequestedTime, Slot]]:
        """Yield (priority, ranked_time, slot) in priority order, skipping unmatched times.

        Priority is 1-based. Each ranked time yields at most once.
        """
        if not slots:
            return
        for priority, wanted in enumerate(ranked_times, 1):
            slot = self.match(slots, wanted)
            if slot is not None:
                yield priority, wanted, slot
