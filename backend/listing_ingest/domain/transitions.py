# listing_ingest/domain/transitions.py
from __future__ import annotations

from ..models import ParseStatus
from .errors import IllegalTransitionError

S = ParseStatus

# Every legal path is an ordered subsequence of
# pending -> quick_parsing -> quick_parsed -> full_parsing -> parsed -> imported.
TRANSITIONS: dict[ParseStatus, frozenset[ParseStatus]] = {
    S.pending: frozenset({S.quick_parsing, S.full_parsing, S.failed}),
    S.quick_parsing: frozenset({S.quick_parsed, S.failed}),
    S.quick_parsed: frozenset({S.full_parsing, S.failed}),
    S.full_parsing: frozenset({S.parsed, S.failed}),
    S.parsed: frozenset({S.imported, S.failed}),
    S.imported: frozenset(),
    S.failed: frozenset(),
}

PROGRESS: dict[ParseStatus, int] = {
    S.pending: 0,
    S.quick_parsing: 10,
    S.quick_parsed: 40,
    S.full_parsing: 60,
    S.parsed: 100,
    S.imported: 100,
}

IN_FLIGHT: frozenset[ParseStatus] = frozenset({S.quick_parsing, S.full_parsing})


def is_terminal(status: ParseStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(current: ParseStatus, target: ParseStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: ParseStatus, target: ParseStatus) -> None:
    if not can_transition(current, target):
        raise IllegalTransitionError(current.value, target.value)
