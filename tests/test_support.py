import inspect
import smtplib

import mongomock
import pytest

import identifiers
import mailer
from database import Repository
from errors import IdGenerationError
from security import get_current_user, hash_password, verify_password


def test_password_hashing():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert hashed.startswith("$2b$10$")
    assert verify_password("correct horse", hashed)
    assert not verify_password("correct horsf", hashed)
    assert not verify_password("correct horse", "plaintext")


def test_current_user_dependency_runs_in_threadpool():
    # it does blocking database reads
    assert not inspect.iscoroutinefunction(get_current_user)


def test_unique_id_skips_taken_values():
    repo = Repository(mongomock.MongoClient()["t"], "seller")
    repo.insert({"sellerId": "MBSLR11111"})
    values = iter(["MBSLR11111", "MBSLR22222"])
    assert identifiers.unique_id(repo, "sellerId", lambda: next(values)) == "MBSLR22222"


def test_unique_id_gives_up():
    repo = Repository(mongomock.MongoClient()["t"], "seller")
    repo.insert({"sellerId": "MBSLR11111"})
    with pytest.raises(IdGenerationError):
        identifiers.unique_id(repo, "sellerId", lambda: "MBSLR11111", max_attempts=3)


def test_identifier_formats():
    assert identifiers.seller_id().startswith("MBSLR") and len(identifiers.seller_id()) == 10
    assert identifiers.six_digits().isdigit()
    assert identifiers.tracking_id().isalnum()
    assert identifiers.fallback_complaint_number().startswith("C")


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.messages = []
        self.started_tls = False
        self.closed = False
        FakeSMTP.instances.append(self)

    def starttls(self):
        self.started_tls = True

    def close(self):
        self.closed = True

    def login(self, user, password):
        self.user = user

    def sendmail(self, sender, recipients, body):
        self.messages.append((sender, recipients, body))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_mailer_sends_with_timeout(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)
    m = mailer.Mailer("smtp.example.com", 587, "user", "pw", "shop@example.com", timeout=5)
    m.send("buyer@example.com", "Hello", "text body", "<p>html body</p>")

    server = FakeSMTP.instances[0]
    assert server.timeout == 5
    assert server.started_tls
    sender, recipients, body = server.messages[0]
    assert sender == "shop@example.com"
    assert recipients == ["buyer@example.com"]
    assert "Subject: Hello" in body


class RejectingTLS(FakeSMTP):
    def starttls(self):
        raise smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")


class RejectingLogin(FakeSMTP):
    def login(self, user, password):
        raise smtplib.SMTPAuthenticationError(535, b"bad credentials")


@pytest.mark.parametrize("smtp_class", [RejectingTLS, RejectingLogin])
def test_mailer_closes_connection_when_setup_fails(monkeypatch, smtp_class):
    FakeSMTP.instances = []
    monkeypatch.setattr(mailer.smtplib, "SMTP", smtp_class)
    m = mailer.Mailer("smtp.example.com", 587, "user", "pw", "shop@example.com")
    with pytest.raises(smtplib.SMTPException):
        m.send("buyer@example.com", "Hello", "text body")

    server = FakeSMTP.instances[0]
    assert server.closed
    assert server.messages == []
    assert m.send_quietly("buyer@example.com", "Hello", "text body") is False
    assert FakeSMTP.instances[1].closed


def test_mailer_quiet_send_and_broadcast(monkeypatch):
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, b"busy")

    monkeypatch.setattr(mailer.smtplib, "SMTP", refuse)
    m = mailer.Mailer("smtp.example.com", 587, None, None, "shop@example.com")
    with pytest.raises(smtplib.SMTPException):
        m.send("a@example.com", "s", "t")
    assert m.send_quietly("a@example.com", "s", "t") is False
    assert m.broadcast(["a@example.com", "b@example.com"], "s", "t") == 0


def test_mailer_without_host_skips():
    m = mailer.Mailer(None, 587, None, None, "shop@example.com")
    m.send("a@example.com", "s", "t")
    assert m.broadcast(["a@example.com"], "s", "t") == 1
