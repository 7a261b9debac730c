"""Patient status lifecycle.

The transition table below is the only source of truth for which status
changes are legal. Pairs that are missing from the table are reported as
undefined, which points at a bug in the caller, while pairs present with
``is_allowed=False`` are policy rejections.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union
from uuid import UUID

from patient_compliance.core.exceptions import (
    ConflictError,
    DisallowedTransitionError,
    InvalidInputError,
    MissingReasonError,
    NotFoundError,
    UndefinedTransitionError,
)
from patient_compliance.repositories.interfaces import HistoryStore, PatientStore
from patient_compliance.schemas.enums import PatientStatus
from patient_compliance.schemas.status import (
    StatusHistoryQuery,
    StatusStatistics,
    StatusTransition,
    TransitionRule,
)
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)

S = PatientStatus


def _rule(
    from_status: Optional[PatientStatus],
    to_status: PatientStatus,
    requires_reason: bool,
    description: str,
    is_allowed: bool = True,
) -> Tuple[Tuple[Optional[PatientStatus], PatientStatus], TransitionRule]:
    return (from_status, to_status), TransitionRule(
        from_status=from_status,
        to_status=to_status,
        is_allowed=is_allowed,
        requires_reason=requires_reason,
        description=description,
    )


TRANSITION_TABLE: Dict[Tuple[Optional[PatientStatus], PatientStatus], TransitionRule] = dict(
    [
        _rule(None, S.NEW, False, "Patient registered"),
        _rule(S.NEW, S.ACTIVE, False, "Start treatment"),
        _rule(S.NEW, S.INACTIVE, True, "Patient did not start treatment"),
        _rule(S.ACTIVE, S.ON_HOLD, True, "Treatment paused"),
        _rule(S.ACTIVE, S.DISCHARGED, True, "Treatment completed"),
        _rule(S.ACTIVE, S.INACTIVE, True, "Patient deactivated"),
        _rule(S.ON_HOLD, S.ACTIVE, False, "Treatment resumed"),
        _rule(S.ON_HOLD, S.DISCHARGED, True, "Discharged while on hold"),
        _rule(S.ON_HOLD, S.INACTIVE, True, "Patient deactivated while on hold"),
        _rule(S.DISCHARGED, S.ACTIVE, True, "Readmission"),
        _rule(S.DISCHARGED, S.INACTIVE, False, "Archived after discharge"),
        _rule(S.INACTIVE, S.ACTIVE, True, "Patient reactivated"),
        # Existing patients never go back to intake
        _rule(S.ACTIVE, S.NEW, False, "Cannot revert patient to new status", False),
        _rule(S.ON_HOLD, S.NEW, False, "Cannot revert patient to new status", False),
        _rule(S.DISCHARGED, S.NEW, False, "Cannot revert patient to new status", False),
        _rule(S.INACTIVE, S.NEW, False, "Cannot revert patient to new status", False),
    ]
)


def _status_label(status: Optional[PatientStatus]) -> str:
    return status.value if status else "absent"


def coerce_status(value: Union[PatientStatus, str, None]) -> Optional[PatientStatus]:
    """Parse a status value, treating None as the absent pseudo-state."""
    if value is None or isinstance(value, PatientStatus):
        return value
    try:
        return PatientStatus(value)
    except ValueError as e:
        raise InvalidInputError(f"Unknown patient status: {value!r}") from e


def get_transition_rule(
    from_status: Optional[PatientStatus], to_status: PatientStatus
) -> Optional[TransitionRule]:
    """Look up the table entry for a pair, if any."""
    return TRANSITION_TABLE.get((from_status, to_status))


def allowed_transitions(current_status: Optional[PatientStatus]) -> List[PatientStatus]:
    """Statuses reachable from ``current_status``, in table order."""
    current_status = coerce_status(current_status)
    return [
        rule.to_status
        for (from_status, _), rule in TRANSITION_TABLE.items()
        if from_status == current_status and rule.is_allowed
    ]


def requires_reason(
    from_status: Optional[PatientStatus], to_status: PatientStatus
) -> bool:
    """Check whether a transition needs a reason.

    Raises:
        UndefinedTransitionError: the pair is not in the table
    """
    from_status, to_status = coerce_status(from_status), coerce_status(to_status)
    rule = get_transition_rule(from_status, to_status)
    if rule is None:
        raise UndefinedTransitionError(
            f"Undefined transition from {_status_label(from_status)} to {to_status.value}",
            from_status,
            to_status,
        )
    return rule.requires_reason


def validate_transition(
    from_status: Optional[PatientStatus],
    to_status: PatientStatus,
    reason: Optional[str] = None,
) -> TransitionRule:
    """Validate a transition against the table, including the reason rule."""
    rule = get_transition_rule(from_status, to_status)
    label = f"{_status_label(from_status)} to {to_status.value}"
    if rule is None:
        raise UndefinedTransitionError(
            f"Undefined transition from {label}", from_status, to_status
        )
    if not rule.is_allowed:
        raise DisallowedTransitionError(
            f"Transition from {label} is not allowed: {rule.description}",
            from_status,
            to_status,
        )
    if rule.requires_reason and not (reason and reason.strip()):
        raise MissingReasonError(
            f"Transition from {label} requires a reason", from_status, to_status
        )
    return rule


class StatusLifecycleService:
    """Validates and records patient status changes."""

    def __init__(self, patient_store: PatientStore, history_store: HistoryStore):
        """Initialize service with its stores."""
        self.patient_store = patient_store
        self.history_store = history_store

    def change_patient_status(
        self,
        patient_id: UUID,
        new_status: Union[PatientStatus, str],
        user_id: str,
        reason: Optional[str] = None,
        expected_status: Union[PatientStatus, str, None] = None,
    ) -> StatusTransition:
        """Move a patient to ``new_status`` and record the transition.

        The status update and the history append happen in one commit. The
        update only applies if the stored status and version are still the
        ones read here, so of two racing changes exactly one wins and the
        other raises ConflictError.
        """
        new_status = coerce_status(new_status)
        if new_status is None:
            raise InvalidInputError("A target status is required")
        if not user_id or not user_id.strip():
            raise InvalidInputError("A user id is required to change status")
        expected_status = coerce_status(expected_status)

        patient = self.patient_store.find_by_id(patient_id)
        if patient is None:
            raise NotFoundError(f"Patient {patient_id} not found")

        if expected_status is not None and expected_status != patient.status:
            raise ConflictError(
                f"Patient {patient_id} is {patient.status.value}, "
                f"expected {expected_status.value}"
            )

        validate_transition(patient.status, new_status, reason)

        transition = self.patient_store.apply_transition(
            patient_id=patient_id,
            expected_status=patient.status,
            expected_version=patient.version,
            to_status=new_status,
            reason=reason.strip() if reason else None,
            changed_by=user_id,
            changed_at=datetime.utcnow(),
        )
        logger.info(
            "Patient status changed",
            patient_id=str(patient_id),
            from_status=patient.status.value,
            to_status=new_status.value,
            changed_by=user_id,
        )
        return transition

    def allowed_transitions(
        self, current_status: Optional[PatientStatus]
    ) -> List[PatientStatus]:
        """Statuses reachable from ``current_status``."""
        return allowed_transitions(current_status)

    def requires_reason(
        self, from_status: Optional[PatientStatus], to_status: PatientStatus
    ) -> bool:
        """Check whether a transition needs a reason."""
        return requires_reason(from_status, to_status)

    def get_patient_status_history(
        self, patient_id: UUID, limit: Optional[int] = None
    ) -> List[StatusTransition]:
        """Transitions of a patient, newest first."""
        return self.history_store.list_transitions(patient_id, limit=limit)

    def get_status_history(self, query: StatusHistoryQuery) -> List[StatusTransition]:
        """Transitions across patients matching ``query``."""
        if query.date_from and query.date_to and query.date_from > query.date_to:
            raise InvalidInputError("date_from must not be after date_to")
        return self.history_store.search(query)

    def get_status_statistics(self, recent_limit: int = 10) -> StatusStatistics:
        """Current status distribution plus the most recent transitions."""
        counts = self.patient_store.count_by_status()
        by_status = {status.value: counts.get(status.value, 0) for status in PatientStatus}
        recent = self.history_store.search(StatusHistoryQuery(limit=recent_limit))
        return StatusStatistics(
            total_patients=sum(by_status.values()),
            by_status=by_status,
            recent_transitions=recent,
        )
