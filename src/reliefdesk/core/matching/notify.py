"""
Client notifications for grant milestones.

When an application is submitted, a grant awarded, or its funds released,
the client is told about it if they have an email address on file. Delivery
is pluggable; the default notifier only writes the message to the log.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from reliefdesk.core.logging import get_contextual_logger


class GrantNoticeKind(str, Enum):
    APPLICATION_RECEIVED = "application_received"
    AWARDED = "awarded"
    FUNDED = "funded"


_SUBJECTS = {
    GrantNoticeKind.APPLICATION_RECEIVED: "Your Grant Application Has Been Received",
    GrantNoticeKind.AWARDED: "Congratulations! You've Been Awarded a Grant",
    GrantNoticeKind.FUNDED: "Your Grant Funds Have Been Released",
}


@dataclass(frozen=True)
class GrantNotice:
    """A message to one client about one grant."""

    kind: GrantNoticeKind
    to: str
    client_name: str
    grant_name: str
    match_id: int
    amount: float | None = None
    organization_id: int | None = None

    @property
    def subject(self) -> str:
        return _SUBJECTS[self.kind]

    @property
    def body(self) -> str:
        if self.kind is GrantNoticeKind.APPLICATION_RECEIVED:
            line = (
                f'Your application for the "{self.grant_name}" grant has been successfully received. '
                "Our team will review your application and you will be notified of any updates."
            )
        elif self.kind is GrantNoticeKind.AWARDED:
            line = (
                f'Congratulations! You have been awarded the "{self.grant_name}" grant '
                f"in the amount of {format_usd(self.amount)}."
            )
        else:
            line = (
                f'The funds for your "{self.grant_name}" grant in the amount of '
                f"{format_usd(self.amount)} have been released."
            )
        return f"Dear {self.client_name},\n\n{line}\n"


def format_usd(amount: float | None) -> str:
    return f"${amount or 0:,.2f}"


class GrantNotifier:
    """Delivers grant notices. Subclass and override ``send``."""

    def send(self, notice: GrantNotice) -> None:
        raise NotImplementedError


class LoggingNotifier(GrantNotifier):
    """Writes notices to the ``reliefdesk.notify`` logger instead of mailing them."""

    def send(self, notice: GrantNotice) -> None:
        log = get_contextual_logger("notify", match_id=notice.match_id, action=notice.kind.value)
        log.info("Notice to %s: %s", notice.to, notice.subject)
        log.debug(notice.body)
