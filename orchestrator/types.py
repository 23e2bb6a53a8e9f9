"""Common type definitions for the orchestrator."""

from enum import Enum


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class TaskDomain(str, Enum):
    """Dashboard tab a request was issued from."""

    LEGAL = "legal"
    DATA = "data"


class WorkflowMode(str, Enum):
    """Generation mode for the motion-drafting path."""

    PARALLEL = "parallel"
    REFINE = "refine"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT_PRIMARY = "assistant_primary"
    ASSISTANT_SECONDARY = "assistant_secondary"
    SYSTEM = "system"


class SessionMode(str, Enum):
    """Which request path the session is on."""

    NONE = "none"
    FREE_FORM = "free_form"
    MOTION = "motion"


class SessionStage(str, Enum):
    """Coarse stage of a conversation session."""

    IDLE = "idle"
    PRIMARY_STREAMING = "primary_streaming"
    PRIMARY_DONE = "primary_done"
    SECONDARY_STREAMING = "secondary_streaming"
    SECONDARY_DONE = "secondary_done"
    COLLECTING = "collecting"
    CREATING = "creating"
    REFINING = "refining"
    DONE = "done"


class IntakeState(str, Enum):
    """States of the intake dialogue."""

    IDLE = "idle"
    COLLECTING = "collecting"
    READY = "ready"
    GENERATING = "generating"


class PipelineStage(str, Enum):
    """Stage of a pipeline run."""

    CREATING = "creating"
    REFINING = "refining"
    DONE = "done"


class ResultSlot(str, Enum):
    """Selector for the two-slot result holder."""

    INITIAL = "initial"
    REFINED = "refined"


class NoticeLevel(str, Enum):
    """Severity of a transient user notification."""

    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"
