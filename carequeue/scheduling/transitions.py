"""Queue status transitions and the appointment time gate.

Status only moves forward: waiting -> in_consultation -> completed.
Entries linked to an appointment are additionally gated by the clock:
a consultation can start from the appointment time until 30 minutes
after it; once that window has passed the entry can only be marked
completed. Walk-ins are never gated by the clock but always
pass through a consultation before completing.
"""

from datetime import datetime

from carequeue.core.exceptions import InvalidTransitionError
from carequeue.scheduling.clock import SLOT_LENGTH
from carequeue.schemas.queue import GateState, QueueStatus

FORWARD_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.WAITING: frozenset({QueueStatus.IN_CONSULTATION, QueueStatus.COMPLETED}),
    QueueStatus.IN_CONSULTATION: frozenset({QueueStatus.COMPLETED}),
    QueueStatus.COMPLETED: frozenset(),
}


def gate_state(appointment_start: datetime | None, now: datetime) -> GateState:
    """
    Locate ``now`` relative to an appointment slot.

    Args:
        appointment_start: Aware start of the linked appointment, None for walk-ins
        now: Aware current time

    Returns:
        Gate state for the entry
    """
    if appointment_start is None:
        return GateState.UNGATED
    if now < appointment_start:
        return GateState.NOT_ARRIVED
    if now > appointment_start + SLOT_LENGTH:
        return GateState.EXPIRED
    return GateState.OPEN


def allowed_transitions(
    current: QueueStatus,
    appointment_start: datetime | None,
    now: datetime,
) -> frozenset[QueueStatus]:
    """Targets reachable from ``current`` at ``now``."""
    candidates = FORWARD_TRANSITIONS[current]
    if current != QueueStatus.WAITING:
        return candidates

    gate = gate_state(appointment_start, now)
    if gate in (GateState.UNGATED, GateState.OPEN):
        return frozenset({QueueStatus.IN_CONSULTATION})
    if gate == GateState.EXPIRED:
        return frozenset({QueueStatus.COMPLETED})
    return frozenset()


def validate_transition(
    current: QueueStatus,
    target: QueueStatus,
    appointment_start: datetime | None,
    now: datetime,
) -> None:
    """
    Check a requested transition.

    Raises:
        InvalidTransitionError: If the status order or the time gate forbids it
    """
    if target not in FORWARD_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move queue entry from {current.value} to {target.value}"
        )

    if target in allowed_transitions(current, appointment_start, now):
        return

    gate = gate_state(appointment_start, now)
    if gate == GateState.UNGATED:
        raise InvalidTransitionError("Walk-in entries must start a consultation before completing")
    if gate == GateState.NOT_ARRIVED:
        raise InvalidTransitionError("Appointment time has not arrived yet")
    if gate == GateState.EXPIRED:
        raise InvalidTransitionError(
            "Appointment slot has passed; the entry can only be marked as completed"
        )
    raise InvalidTransitionError(
        "Entry can only be completed after its appointment slot has passed"
    )
