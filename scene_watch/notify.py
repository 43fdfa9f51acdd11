"""Mail notification collaborators.

`SendmailNotifier` hands a plain-text message to the local MTA through
``sendmail -t`` (recipients are read from the headers). It performs one
attempt; callers decide what to do with a `NotificationError`.
"""

import logging
import subprocess
from email.message import EmailMessage

from .config import Config

logger = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    """Raised when the mail could not be handed to sendmail."""


class NullNotifier:
    """Notifier used when no recipient is configured."""

    def notify(self, to_addr: str, from_addr: str, subject: str, body: str) -> None:
        logger.debug("Mail notification disabled; skipping %r", subject)


class SendmailNotifier:
    """Deliver notifications by piping an RFC 5322 message to sendmail."""

    def __init__(self, sendmail_path: str = None, timeout: float = None) -> None:
        self.sendmail_path = sendmail_path or Config.SENDMAIL_PATH
        self.timeout = float(Config.MAIL_TIMEOUT_SEC if timeout is None else timeout)

    @staticmethod
    def build_message(to_addr: str, from_addr: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["To"] = to_addr
        msg["From"] = from_addr
        msg["Subject"] = subject
        msg.set_content(body)
        return msg

    def notify(self, to_addr: str, from_addr: str, subject: str, body: str) -> None:
        """Send one message.

        Raises:
          NotificationError: if sendmail is missing, times out, or exits non-zero.
        """
        msg = self.build_message(to_addr, from_addr, subject, body)
        try:
            proc = subprocess.run(
                [self.sendmail_path, "-t"],
                input=msg.as_bytes(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise NotificationError(f"failed to invoke {self.sendmail_path}: {e}") from e
        if proc.returncode != 0:
            err = proc.stderr.decode("utf-8", "replace").strip()
            raise NotificationError(f"sendmail exited with {proc.returncode}: {err}")
        logger.info("Notification mailed to %s", to_addr)


def make_notifier():
    """Return a `SendmailNotifier` when SW_MAIL_TO is set, else a `NullNotifier`."""
    if Config.MAIL_TO:
        return SendmailNotifier()
    return NullNotifier()
