"""Test configuration and fixtures."""

import os

import logfire
import pytest

from accounts.domain.service import CredentialCodec, PasswordVault
from accounts.config import PasswordSettings

# Defaults for Settings() built by the test container
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PASSWORDS__ROUNDS", "4")
os.environ.setdefault("AUTH__ISSUER", "https://accounts.test")

logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
def vault() -> PasswordVault:
    """Password vault with the minimum bcrypt work factor."""
    return PasswordVault(PasswordSettings(rounds=4))


@pytest.fixture
def codec() -> CredentialCodec:
    return CredentialCodec()
