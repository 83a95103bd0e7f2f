"""Out-of-band notifications (the mail transport itself lives elsewhere)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger("taskhub.notifications")


@dataclass(frozen=True)
class Recipient:
    id: int
    name: str
    email: str


@dataclass(frozen=True)
class NotificationMessage:
    kind: str
    subject: str
    lines: tuple[str, ...]
    action_text: str | None = None
    action_url: str | None = None

    def render_text(self) -> str:
        body = list(self.lines)
        if self.action_url:
            body.append(f"{self.action_text or 'Open'}: {self.action_url}")
        return "\n".join(body)


class Notifier(Protocol):
    def send(self, recipient: Recipient, message: NotificationMessage) -> None: ...


class LogNotifier:
    """Default sink: writes each message to the notifications logger."""

    def send(self, recipient: Recipient, message: NotificationMessage) -> None:
        logger.info(
            "notify kind=%s to=%s subject=%r",
            message.kind,
            recipient.email,
            message.subject,
        )


@dataclass
class OutboxNotifier:
    """Keeps sent messages in memory, e.g. for tests."""

    sent: list[tuple[Recipient, NotificationMessage]] = field(default_factory=list)

    def send(self, recipient: Recipient, message: NotificationMessage) -> None:
        self.sent.append((recipient, message))

    def sent_to(self, user_id: int, kind: str | None = None) -> list[NotificationMessage]:
        return [
            msg for rcpt, msg in self.sent
            if rcpt.id == user_id and (kind is None or msg.kind == kind)
        ]


def comment_added_message(*, task_id: int, task_title: str, content: str, base_url: str) -> NotificationMessage:
    return NotificationMessage(
        kind="comment_added",
        subject="New Comment on your Task",
        lines=(
            f"A new comment has been added to your task: {task_title}",
            f"Comment Content: {content}",
            "Thank you for using our Task Manager!",
        ),
        action_text="View Task",
        action_url=f"{base_url.rstrip('/')}/api/tasks/{task_id}",
    )
