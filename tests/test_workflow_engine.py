import pytest
from httpx import AsyncClient

from models import ConsultationStatus, PrescriptionStatus, UserRole
from services.workflow_engine import (
    CONSULTATION_TRANSITIONS,
    PRESCRIPTION_TRANSITIONS,
    allowed_next_statuses,
    can_transition,
    is_editable,
    is_terminal,
)

ALL_STATUSES = list(ConsultationStatus) + list(PrescriptionStatus)


@pytest.mark.parametrize("status", list(ConsultationStatus))
def test_consultation_terminal_iff_no_outgoing_edges(status):
    assert is_terminal(status) == (len(allowed_next_statuses(status)) == 0)


@pytest.mark.parametrize("status", list(PrescriptionStatus))
def test_prescription_editable_only_in_draft_and_rejected(status):
    assert is_editable(status) == (status in (PrescriptionStatus.DRAFT, PrescriptionStatus.REJECTED))


@pytest.mark.parametrize("status", ALL_STATUSES)
def test_no_self_transitions(status):
    assert status not in allowed_next_statuses(status)
    assert not can_transition(status, status)


@pytest.mark.parametrize("terminal", [ConsultationStatus.FINISHED, ConsultationStatus.CANCELED])
def test_finished_and_canceled_consultations_never_move(terminal):
    assert is_terminal(terminal)
    for target in ConsultationStatus:
        assert not can_transition(terminal, target)


def test_dispensed_prescription_never_moves():
    assert is_terminal(PrescriptionStatus.DISPENSED)
    for target in PrescriptionStatus:
        assert not can_transition(PrescriptionStatus.DISPENSED, target)


def test_transition_table_samples():
    assert can_transition(ConsultationStatus.WAITING, ConsultationStatus.IN_PROGRESS)
    assert not can_transition(ConsultationStatus.WAITING, ConsultationStatus.FINISHED)
    assert can_transition(PrescriptionStatus.REJECTED, PrescriptionStatus.DRAFT)
    assert not can_transition(PrescriptionStatus.APPROVED, PrescriptionStatus.PENDING_REVIEW)


def test_full_edge_sets():
    assert allowed_next_statuses(ConsultationStatus.WAITING) == {ConsultationStatus.IN_PROGRESS, ConsultationStatus.CANCELED}
    assert allowed_next_statuses(ConsultationStatus.IN_PROGRESS) == {ConsultationStatus.FINISHED, ConsultationStatus.CANCELED}
    assert allowed_next_statuses(PrescriptionStatus.DRAFT) == {PrescriptionStatus.PENDING_REVIEW}
    assert allowed_next_statuses(PrescriptionStatus.PENDING_REVIEW) == {PrescriptionStatus.APPROVED, PrescriptionStatus.REJECTED}
    assert allowed_next_statuses(PrescriptionStatus.APPROVED) == {PrescriptionStatus.DISPENSED}
    assert allowed_next_statuses(PrescriptionStatus.REJECTED) == {PrescriptionStatus.DRAFT}


def test_resubmission_loop_is_one_directional():
    assert not can_transition(PrescriptionStatus.DRAFT, PrescriptionStatus.REJECTED)
    assert not can_transition(PrescriptionStatus.REJECTED, PrescriptionStatus.PENDING_REVIEW)
    assert not is_terminal(PrescriptionStatus.REJECTED)


def test_every_status_has_a_table_entry():
    assert set(CONSULTATION_TRANSITIONS) == set(ConsultationStatus)
    assert set(PRESCRIPTION_TRANSITIONS) == set(PrescriptionStatus)


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        CONSULTATION_TRANSITIONS[ConsultationStatus.FINISHED] = frozenset({ConsultationStatus.WAITING})
    with pytest.raises(AttributeError):
        PRESCRIPTION_TRANSITIONS[PrescriptionStatus.DISPENSED].add(PrescriptionStatus.DRAFT)


@pytest.mark.parametrize("value", [None, "WAITING", "", 42, UserRole.ADMIN])
def test_unknown_values_have_no_transitions(value):
    assert allowed_next_statuses(value) == frozenset()
    assert is_terminal(value)
    assert not is_editable(value)


def test_cross_type_targets_are_refused():
    assert not can_transition(ConsultationStatus.WAITING, PrescriptionStatus.DRAFT)
    assert not can_transition(PrescriptionStatus.DRAFT, ConsultationStatus.IN_PROGRESS)
    assert not can_transition(ConsultationStatus.WAITING, "IN_PROGRESS")


def test_consultation_statuses_are_never_editable():
    assert not any(is_editable(s) for s in ConsultationStatus)


def test_from_code_distinguishes_missing_values():
    assert ConsultationStatus.from_code("WAITING") is ConsultationStatus.WAITING
    assert PrescriptionStatus.from_code("PENDING_REVIEW") is PrescriptionStatus.PENDING_REVIEW
    assert ConsultationStatus.from_code("DRAFT") is None
    assert PrescriptionStatus.from_code(None) is None
    assert UserRole.from_code("nurse") is None


@pytest.mark.asyncio
async def test_workflow_endpoint_describes_status(async_client: AsyncClient):
    response = await async_client.get("/api/workflow/prescription/rejected")

    assert response.status_code == 200
    assert response.json() == {
        "status": "REJECTED",
        "allowed_next": ["DRAFT"],
        "terminal": False,
        "editable": True,
    }


@pytest.mark.asyncio
async def test_workflow_endpoint_rejects_unknown_status(async_client: AsyncClient):
    response = await async_client.get("/api/workflow/consultation/ARCHIVED")

    assert response.status_code == 400
    assert response.json()["code"] == 400
