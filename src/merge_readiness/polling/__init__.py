"""CI polling with exponential backoff, jitter and failure classification."""

from merge_readiness.polling.classification import (
    classify_failure,
    determine_failure_type,
    most_severe,
)
from merge_readiness.polling.events import (
    BackoffScheduled,
    CircuitOpened,
    FailureClassified,
    PollCompleted,
    PollerEvent,
    PollStarted,
    TerminalFailureDetected,
)
from merge_readiness.polling.models import (
    CheckFailure,
    CheckStatus,
    CIState,
    CIStatus,
    PollFailureReason,
    PollResult,
    StatusCheck,
    StatusChecker,
)
from merge_readiness.polling.poller import Poller, PollerConfig
from merge_readiness.polling.status import (
    StatusRollup,
    build_ci_status,
    create_status_checker,
)

__all__ = [
    "BackoffScheduled",
    "CIState",
    "CIStatus",
    "CheckFailure",
    "CheckStatus",
    "CircuitOpened",
    "FailureClassified",
    "PollCompleted",
    "PollFailureReason",
    "PollResult",
    "PollStarted",
    "Poller",
    "PollerConfig",
    "PollerEvent",
    "StatusCheck",
    "StatusChecker",
    "StatusRollup",
    "TerminalFailureDetected",
    "build_ci_status",
    "classify_failure",
    "create_status_checker",
    "determine_failure_type",
    "most_severe",
]
