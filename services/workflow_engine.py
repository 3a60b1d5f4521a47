"""
Workflow status engine for consultations and prescriptions.

The transition tables are fixed at import time and read-only. Every query is
a pure lookup: a status that is not a key of its table has no outgoing
edges, so unknown values are reported as having nothing allowed instead of
raising. Turning a refused transition into an error is the caller's job.
"""
from types import MappingProxyType
from typing import FrozenSet, Mapping, Union

from models import ConsultationStatus, PrescriptionStatus

Status = Union[ConsultationStatus, PrescriptionStatus]

CONSULTATION_TRANSITIONS: Mapping[ConsultationStatus, FrozenSet[ConsultationStatus]] = MappingProxyType({
    ConsultationStatus.WAITING: frozenset({ConsultationStatus.IN_PROGRESS, ConsultationStatus.CANCELED}),
    ConsultationStatus.IN_PROGRESS: frozenset({ConsultationStatus.FINISHED, ConsultationStatus.CANCELED}),
    ConsultationStatus.FINISHED: frozenset(),
    ConsultationStatus.CANCELED: frozenset(),
})

PRESCRIPTION_TRANSITIONS: Mapping[PrescriptionStatus, FrozenSet[PrescriptionStatus]] = MappingProxyType({
    PrescriptionStatus.DRAFT: frozenset({PrescriptionStatus.PENDING_REVIEW}),
    PrescriptionStatus.PENDING_REVIEW: frozenset({PrescriptionStatus.APPROVED, PrescriptionStatus.REJECTED}),
    PrescriptionStatus.APPROVED: frozenset({PrescriptionStatus.DISPENSED}),
    # Rejected prescriptions go back to the doctor for another draft
    PrescriptionStatus.REJECTED: frozenset({PrescriptionStatus.DRAFT}),
    PrescriptionStatus.DISPENSED: frozenset(),
})

EDITABLE_PRESCRIPTION_STATUSES = frozenset({PrescriptionStatus.DRAFT, PrescriptionStatus.REJECTED})

_TABLES = MappingProxyType({
    ConsultationStatus: CONSULTATION_TRANSITIONS,
    PrescriptionStatus: PRESCRIPTION_TRANSITIONS,
})

_NOTHING: FrozenSet = frozenset()


def allowed_next_statuses(current: Status) -> FrozenSet[Status]:
    table = _TABLES.get(type(current))
    if table is None:
        return _NOTHING
    return table.get(current, _NOTHING)


def can_transition(current: Status, target: Status) -> bool:
    return isinstance(target, type(current)) and target in allowed_next_statuses(current)


def is_terminal(status: Status) -> bool:
    return not allowed_next_statuses(status)


def is_editable(status: Status) -> bool:
    """Only draft and rejected prescriptions may be changed"""
    return isinstance(status, PrescriptionStatus) and status in EDITABLE_PRESCRIPTION_STATUSES
