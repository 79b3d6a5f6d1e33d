from __future__ import annotations

import re
from datetime import datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db


class AppTestConfig(Config):
    TESTING = True
    ENVIRONMENT = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    OTP_SECRET = "test-otp-secret"
    PIN_BCRYPT_ROUNDS = 4
    AUTH_PASSWORD_ROUNDS = 4
    VERIFY_RATE_MAX_REQUESTS = 1000
    CORS_ALLOWED_ORIGINS = ["https://app.example.com"]


class DevConfig(AppTestConfig):
    ENVIRONMENT = "development"


class FakeGateway:
    """Records outbound texts instead of calling a provider."""

    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.sent: list[tuple[str, str, str]] = []

    def send(self, phone: str, message: str, country: str) -> bool:
        self.sent.append((phone, message, country))
        return self.ok

    def last_code(self) -> str:
        assert self.sent, "no SMS was sent"
        return re.search(r"\b(\d{6})\b", self.sent[-1][1]).group(1)


class Clock:
    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def other_code(code: str) -> str:
    return str((int(code) + 1) % 10 ** 6).zfill(6)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


def make_app(config, gateway, clock):
    app = create_app(config, sms_gateway=gateway, clock=clock)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app(gateway, clock):
    yield from make_app(AppTestConfig, gateway, clock)


@pytest.fixture
def dev_app(gateway, clock):
    yield from make_app(DevConfig, gateway, clock)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def dev_client(dev_app):
    return dev_app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["phone_auth"]
