"""
Admission Status Transitions

The lifecycle state machine. Any status may only move along the edges
listed here; terminal statuses have no outbound edges.
"""

from gsos.modules.admissions.schemas import AdmissionStatus

VALID_STATUS_TRANSITIONS: dict[AdmissionStatus, set[AdmissionStatus]] = {
    AdmissionStatus.SUBMITTED: {
        AdmissionStatus.PENDING,  # Waiting on documents or fees
        AdmissionStatus.UNDER_REVIEW,
        AdmissionStatus.WITHDRAWN,
    },
    AdmissionStatus.PENDING: {
        AdmissionStatus.UNDER_REVIEW,
        AdmissionStatus.WITHDRAWN,
    },
    AdmissionStatus.UNDER_REVIEW: {
        AdmissionStatus.INTERVIEW_SCHEDULED,
        AdmissionStatus.ASSESSMENT_SCHEDULED,
        AdmissionStatus.OFFER_MADE,  # Fast-track offer
        AdmissionStatus.REJECTED,
        AdmissionStatus.WITHDRAWN,
    },
    AdmissionStatus.INTERVIEW_SCHEDULED: {
        AdmissionStatus.ASSESSMENT_SCHEDULED,
        AdmissionStatus.OFFER_MADE,
        AdmissionStatus.REJECTED,
        AdmissionStatus.WITHDRAWN,
    },
    AdmissionStatus.ASSESSMENT_SCHEDULED: {
        AdmissionStatus.OFFER_MADE,  # Requires an assessment outcome
        AdmissionStatus.REJECTED,  # Requires an assessment outcome
        AdmissionStatus.WITHDRAWN,
    },
    AdmissionStatus.OFFER_MADE: {
        AdmissionStatus.OFFER_ACCEPTED,
        AdmissionStatus.OFFER_DECLINED,
        AdmissionStatus.WITHDRAWN,
    },
    AdmissionStatus.OFFER_ACCEPTED: {
        AdmissionStatus.CONVERTED_TO_STUDENT,  # Only via conversion
        AdmissionStatus.WITHDRAWN,
    },
    # Terminal states - no transitions allowed
    AdmissionStatus.OFFER_DECLINED: set(),
    AdmissionStatus.REJECTED: set(),
    AdmissionStatus.WITHDRAWN: set(),
    AdmissionStatus.CONVERTED_TO_STUDENT: set(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_STATUS_TRANSITIONS.items() if not targets
)

# Entering one of these records decision notes, decider and date
DECISION_STATUSES = frozenset(
    {
        AdmissionStatus.OFFER_MADE,
        AdmissionStatus.REJECTED,
        AdmissionStatus.OFFER_DECLINED,
    }
)

# Leaving assessment_scheduled towards these needs a score or notes
ASSESSMENT_GATED_TARGETS = frozenset({AdmissionStatus.OFFER_MADE, AdmissionStatus.REJECTED})


def is_valid_transition(current: AdmissionStatus, target: AdmissionStatus) -> bool:
    """Check whether `current -> target` is an edge of the lifecycle."""
    return target in VALID_STATUS_TRANSITIONS.get(current, set())


def is_terminal(status: AdmissionStatus) -> bool:
    return status in TERMINAL_STATUSES
