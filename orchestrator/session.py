"""Conversation session owned by the task orchestrator."""

import uuid
from collections.abc import Callable

from .log import get_logger
from .models import ConversationMessage, Notification, PipelineRun
from .types import MessageRole, NoticeLevel, SessionMode, SessionStage

logger = get_logger(__name__)


class ConversationSession:
    """Ordered message log and current stage of one conversation.

    Messages are append-only. The presentation layer never mutates a
    session; it reads snapshots built by the orchestrator.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.mode = SessionMode.NONE
        self.stage = SessionStage.IDLE
        self.messages: list[ConversationMessage] = []
        self.streaming_text = ""
        self.notifications: list[Notification] = []
        self.run: PipelineRun | None = None
        self.motion_type: str | None = None
        self.original_query = ""
        self.detected_dates: list[str] = []
        self.version = 0
        self._listeners: list[Callable[[], None]] = []

    def __repr__(self) -> str:
        return (
            f"ConversationSession({self.session_id!r}, mode={self.mode.value}, "
            f"stage={self.stage.value}, messages={len(self.messages)})"
        )

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback fired after every change."""
        self._listeners.append(listener)

    def touch(self) -> None:
        """Record a change and notify listeners."""
        self.version += 1
        for listener in self._listeners:
            listener()

    def append(self, role: MessageRole, content: str) -> ConversationMessage:
        """Append a message to the log."""
        message = ConversationMessage(role=role, content=content)
        self.messages.append(message)
        logger.debug(f"[{self.session_id[:8]}] {role.value}: {content[:60]!r}")
        self.touch()
        return message

    def set_stage(self, stage: SessionStage) -> None:
        if stage != self.stage:
            logger.debug(
                f"[{self.session_id[:8]}] stage {self.stage.value} -> {stage.value}"
            )
            self.stage = stage
            self.touch()

    def set_streaming_text(self, text: str) -> None:
        self.streaming_text = text
        self.touch()

    def notify(self, level: NoticeLevel, message: str) -> Notification:
        """Record a transient notification for the user."""
        notification = Notification(level=level, message=message)
        self.notifications.append(notification)
        self.touch()
        return notification

    def drain_notifications(self) -> list[Notification]:
        """Return and clear pending notifications."""
        drained, self.notifications = self.notifications, []
        return drained

    def last_message(
        self, role: MessageRole | None = None
    ) -> ConversationMessage | None:
        """Most recent message, optionally restricted to ``role``."""
        for message in reversed(self.messages):
            if role is None or message.role == role:
                return message
        return None

    def latest_response(self) -> str:
        """Text of the most recent assistant answer."""
        for message in reversed(self.messages):
            if message.role in (
                MessageRole.ASSISTANT_PRIMARY,
                MessageRole.ASSISTANT_SECONDARY,
            ):
                return message.content
        return ""

    def user_messages(self) -> list[str]:
        return [m.content for m in self.messages if m.role == MessageRole.USER]
