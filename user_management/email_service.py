"""Verification mail delivery, decoupled from the request/response cycle."""
from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from starlette.concurrency import run_in_threadpool

from user_management import config

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationEmailJob:
    to_email: str
    name: str
    token: str


class Mailer:
    """Builds messages and hands them to an SMTP relay."""

    def __init__(
        self,
        host: Optional[str] = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: Optional[str] = config.SMTP_USERNAME,
        password: Optional[str] = config.SMTP_PASSWORD,
        use_tls: bool = config.SMTP_TLS,
        from_email: str = config.FROM_EMAIL,
        frontend_url: str = config.FRONTEND_URL,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self.frontend_url = frontend_url

    def verification_url(self, token: str) -> str:
        return f"{self.frontend_url}/verify?token={token}"

    def build_verification_message(self, job: VerificationEmailJob) -> MIMEMultipart:
        verify_url = self.verification_url(job.token)
        text = (
            f"Welcome, {job.name}!\n\n"
            "Thank you for registering. Please verify your email address by opening the link below:\n\n"
            f"{verify_url}\n\n"
            "If you didn't create this account, please ignore this email.\n"
        )
        html = f"""\
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <h2>Welcome, {escape(job.name)}!</h2>
    <p>Thank you for registering. Please verify your email address by clicking the button below:</p>
    <p><a href="{escape(verify_url)}" style="display: inline-block; padding: 12px 24px; background-color: #007bff; color: white; text-decoration: none; border-radius: 4px;">Verify Email Address</a></p>
    <p>Or copy and paste this link into your browser:</p>
    <p style="word-break: break-all; color: #007bff;">{escape(verify_url)}</p>
    <p style="margin-top: 30px; font-size: 12px; color: #666;">If you didn't create this account, please ignore this email.</p>
  </body>
</html>
"""
        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_email
        msg["To"] = job.to_email
        msg["Subject"] = "Verify Your Email Address"
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))
        return msg

    def send_verification_email(self, job: VerificationEmailJob) -> None:
        msg = self.build_verification_message(job)
        if not self.host:
            # Dev fallback: no relay configured, just log the link
            LOGGER.info("SMTP not configured; verification link for %s: %s", job.to_email, self.verification_url(job.token))
            return
        with smtplib.SMTP(self.host, self.port, timeout=10) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.from_email, [job.to_email], msg.as_string())
        LOGGER.info("Verification email sent to %s", job.to_email)

    def verify_connection(self) -> bool:
        if not self.host:
            LOGGER.warning("SMTP_HOST is not set; verification emails will only be logged")
            return False
        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.noop()
        except (smtplib.SMTPException, OSError) as e:
            LOGGER.warning("Email service not configured properly: %s", e)
            return False
        LOGGER.info("Email service is ready")
        return True


def _log_check_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.warning("Email service check failed: %r", exc)


class NotificationDispatcher:
    """Queue of outgoing emails drained by one background worker task.

    ``enqueue`` is safe to call from request handlers: it never waits and
    never raises because of delivery problems.
    """

    def __init__(self, mailer: Mailer) -> None:
        self.mailer = mailer
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._check: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
        self._check = asyncio.create_task(run_in_threadpool(self.mailer.verify_connection))
        self._check.add_done_callback(_log_check_failure)

    async def stop(self) -> None:
        if self._check is not None and not self._check.done():
            self._check.cancel()
        self._check = None
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        pending = self._queue.qsize() if self._queue else 0
        if pending:
            LOGGER.warning("Dropping %d undelivered notification(s) on shutdown", pending)
        self._worker = None
        self._queue = None

    def enqueue(self, job: VerificationEmailJob) -> None:
        if self._queue is None:
            LOGGER.error("Notification dispatcher is not running; dropping email to %s", job.to_email)
            return
        self._queue.put_nowait(job)

    async def drain(self) -> None:
        """Wait until every queued job has been attempted."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await run_in_threadpool(self.mailer.send_verification_email, job)
            except Exception:
                # a dropped notification is logged and lost
                LOGGER.exception("Failed to send verification email to %s", job.to_email)
            finally:
                self._queue.task_done()
