"""Run result notifications."""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Protocol

import structlog

from ..constants import ENGINE_EXIT_DESCRIPTIONS
from ..models.run import RunReport
from .config_loader import NotificationSettings
from .exceptions import NotificationFailure

logger = structlog.get_logger()


class Notifier(Protocol):
    """Delivers a finished run's report."""

    async def notify(self, report: RunReport) -> None: ...


class NullNotifier:
    """Notifier used when no transport is configured."""

    async def notify(self, report: RunReport) -> None:
        logger.debug("Notifications disabled", phase=report.phase.value)


def should_notify(policy: str, report: RunReport) -> bool:
    """Apply the configured notify policy to a report."""
    if policy == "always":
        return True
    if policy == "failure":
        return not report.success
    if policy == "success":
        return report.success
    return False


def describe_exit_code(report: RunReport) -> str:
    if report.timed_out:
        return "Cancelled by idle watchdog"
    if report.exit_code in ENGINE_EXIT_DESCRIPTIONS:
        return ENGINE_EXIT_DESCRIPTIONS[report.exit_code]
    return "Needs review" if report.success else "Copy failures"


def compose_message(report: RunReport, settings: NotificationSettings) -> EmailMessage:
    """Build a plain-text summary e-mail for a report."""
    status = "SUCCESS" if report.success else "FAILED"
    message = EmailMessage()
    message["From"] = settings.sender
    message["To"] = ", ".join(settings.recipients)
    message["Subject"] = f"[migratectl] {report.phase.value} {status} (exit {report.exit_code})"

    lines = [
        f"Phase:        {report.phase.value}",
        f"Status:       {status} - {describe_exit_code(report)}",
        f"Source:       {report.source}",
        f"Destination:  {report.destination}",
        f"Started:      {report.start_time.isoformat()}",
        f"Duration:     {report.duration_seconds:.1f}s",
        f"Directories:  {report.total_dirs}",
        f"Files:        {report.total_files} total, {report.copied_files} copied, "
        f"{report.skipped_files} skipped, {report.failed_files} failed, {report.extra_files} extra",
        f"Bytes copied: {report.copied_bytes}",
        f"Log:          {report.log_path}",
    ]
    if report.snapshot_retry:
        lines.append("Source read from a volume snapshot after the primary attempt failed files.")
    message.set_content("\n".join(lines) + "\n")
    return message


class SmtpNotifier:
    """Send run reports by e-mail."""

    def __init__(self, settings: NotificationSettings):
        self.settings = settings
        self.logger = logger.bind(component="smtp_notifier")

    async def notify(self, report: RunReport) -> None:
        """Send the report if the notify policy selects it.

        Raises:
            NotificationFailure: If the SMTP exchange fails
        """
        if not should_notify(self.settings.policy, report):
            self.logger.debug("Notification skipped by policy", policy=self.settings.policy)
            return

        message = compose_message(report, self.settings)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailure(f"Failed to send notification: {e}") from e
        self.logger.info("Notification sent", recipients=list(self.settings.recipients))

    def _send(self, message: EmailMessage) -> None:
        settings = self.settings
        smtp: smtplib.SMTP
        if settings.use_ssl:
            smtp = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=settings.timeout_seconds)
        else:
            smtp = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.timeout_seconds)
        try:
            smtp.ehlo()
            if settings.use_starttls and not settings.use_ssl:
                smtp.starttls()
                smtp.ehlo()
            if settings.username and settings.password:
                smtp.login(settings.username, settings.password)
            smtp.send_message(message, to_addrs=list(settings.recipients))
        finally:
            smtp.quit()


def build_notifier(settings: NotificationSettings) -> Notifier:
    """SMTP notifier when configured, otherwise a no-op."""
    if settings.enabled:
        return SmtpNotifier(settings)
    return NullNotifier()
