from enum import Enum


class BuildMode(str, Enum):
    FULL = "full"
    SELECTIVE = "selective"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    NO_CHANGES = "no_changes"
    FAILURE = "failure"
    SKIPPED = "skipped"


class ResultKind(str, Enum):
    """Kind of the last recorded run result"""
    NONE = "none"
    NO_CHANGES = "no_changes"
    SUCCESS = "success"
    ERROR = "error"


class StrategyStatus(str, Enum):
    """Tagged result of a fallback-chain strategy"""
    SUCCESS = "success"
    SOFT_FAIL = "soft_fail"
    HARD_FAIL = "hard_fail"


class ReconcileStatus(str, Enum):
    PUSHED = "pushed"
    NOOP = "noop"


class ConnectionStatus(str, Enum):
    OK = "ok"
    AUTH_FAILURE = "auth_failure"
    NOT_FOUND = "not_found"
    UNEXPECTED = "unexpected"
    NOT_CONFIGURED = "not_configured"
