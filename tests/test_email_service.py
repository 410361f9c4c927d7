"""Tests for verification mail composition and the background dispatcher."""

from __future__ import annotations

import asyncio
import logging
import smtplib

import pytest

from user_management.email_service import Mailer, NotificationDispatcher, VerificationEmailJob


class RecordingMailer(Mailer):
    def __init__(self, fail_for=()):
        super().__init__(host=None, frontend_url="https://users.example.com")
        self.sent = []
        self.fail_for = set(fail_for)

    def send_verification_email(self, job):
        if job.to_email in self.fail_for:
            raise smtplib.SMTPException("relay unavailable")
        self.sent.append(job)

    def verify_connection(self):
        return True


def _job(email="alice@example.com"):
    return VerificationEmailJob(to_email=email, name="Alice", token="tok123")


def test_verification_message_contains_link():
    mailer = Mailer(host=None, from_email="noreply@example.com", frontend_url="https://users.example.com")

    msg = mailer.build_verification_message(_job())

    assert msg["To"] == "alice@example.com"
    assert msg["From"] == "noreply@example.com"
    assert msg["Subject"] == "Verify Your Email Address"
    bodies = [part.get_payload(decode=True).decode() for part in msg.get_payload()]
    assert all("https://users.example.com/verify?token=tok123" in body for body in bodies)


def test_send_without_smtp_host_logs_link(caplog):
    mailer = Mailer(host=None, frontend_url="https://users.example.com")

    with caplog.at_level(logging.INFO, logger="user_management.email_service"):
        mailer.send_verification_email(_job())

    assert "https://users.example.com/verify?token=tok123" in caplog.text


def test_send_uses_smtp_relay(monkeypatch):
    calls = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            calls.append(("connect", host, port))

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            calls.append(("starttls",))

        def login(self, username, password):
            calls.append(("login", username))

        def sendmail(self, sender, recipients, message):
            calls.append(("sendmail", sender, tuple(recipients)))

    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    mailer = Mailer(host="smtp.example.com", port=2525, username="user", password="secret",
                    use_tls=True, from_email="noreply@example.com")

    mailer.send_verification_email(_job())

    assert calls == [
        ("connect", "smtp.example.com", 2525),
        ("starttls",),
        ("login", "user"),
        ("sendmail", "noreply@example.com", ("alice@example.com",)),
    ]


@pytest.mark.anyio
async def test_dispatcher_delivers_in_background():
    mailer = RecordingMailer()
    dispatcher = NotificationDispatcher(mailer)
    dispatcher.start()
    try:
        dispatcher.enqueue(_job("a@example.com"))
        dispatcher.enqueue(_job("b@example.com"))
        await asyncio.wait_for(dispatcher.drain(), timeout=5)
    finally:
        await dispatcher.stop()

    assert [job.to_email for job in mailer.sent] == ["a@example.com", "b@example.com"]
    assert not dispatcher.running


@pytest.mark.anyio
async def test_dispatcher_absorbs_send_failures(caplog):
    mailer = RecordingMailer(fail_for={"broken@example.com"})
    dispatcher = NotificationDispatcher(mailer)
    dispatcher.start()
    try:
        dispatcher.enqueue(_job("broken@example.com"))
        dispatcher.enqueue(_job("ok@example.com"))
        await asyncio.wait_for(dispatcher.drain(), timeout=5)
        assert dispatcher.running
    finally:
        await dispatcher.stop()

    assert [job.to_email for job in mailer.sent] == ["ok@example.com"]
    assert "Failed to send verification email to broken@example.com" in caplog.text


@pytest.mark.anyio
async def test_dispatcher_logs_failed_connection_check(caplog):
    class UnreachableMailer(RecordingMailer):
        def verify_connection(self):
            raise RuntimeError("relay check crashed")

    dispatcher = NotificationDispatcher(UnreachableMailer())
    dispatcher.start()
    try:
        for _ in range(100):
            if "Email service check failed" in caplog.text:
                break
            await asyncio.sleep(0.01)
        dispatcher.enqueue(_job())
        await asyncio.wait_for(dispatcher.drain(), timeout=5)
    finally:
        await dispatcher.stop()

    assert "Email service check failed" in caplog.text
    assert "relay check crashed" in caplog.text
    assert [job.to_email for job in dispatcher.mailer.sent] == ["alice@example.com"]


def test_enqueue_before_start_drops_job(caplog):
    dispatcher = NotificationDispatcher(RecordingMailer())

    dispatcher.enqueue(_job())

    assert "dropping email" in caplog.text


def test_registration_succeeds_when_mail_relay_fails(engine):
    from fastapi.testclient import TestClient

    from user_management.main import create_app

    mailer = RecordingMailer(fail_for={"alice@example.com"})
    app = create_app(engine=engine, mailer=mailer)

    with TestClient(app) as client:
        response = client.post(
            "/api/auth/register",
            json={"name": "Alice", "email": "alice@example.com", "password": "pw1"},
        )

    assert response.status_code == 201
    assert mailer.sent == []
