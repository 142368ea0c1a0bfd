"""Set of phone numbers that answered since the last consumer poll."""

import re
import threading

_NON_DIGITS = re.compile(r"\D+")


def normalize_number(identifier) -> str:
    return _NON_DIGITS.sub("", str(identifier or ""))


class ReplySet:
    """Deduplicated, insertion-ordered identifiers drained wholesale."""

    def __init__(self) -> None:
        # dict keeps insertion order for the drain.
        self._numbers: dict[str, None] = {}
        self._lock = threading.Lock()

    def add(self, identifier) -> bool:
        """Record one sender; returns False when nothing usable was given."""

        number = normalize_number(identifier)
        if not number:
            return False
        with self._lock:
            self._numbers.setdefault(number, None)
        return True

    def drain_all(self) -> list[str]:
        with self._lock:
            numbers = list(self._numbers)
            self._numbers.clear()
        return numbers

    def __len__(self) -> int:
        with self._lock:
            return len(self._numbers)
