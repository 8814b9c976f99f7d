"""Unit tests for Clerk session token verification."""

import time

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from app.core.config import EnvironmentEnum, settings
from app.core.security import ClerkAuthenticator
from app.exceptions.base import UnauthenticatedError


@pytest.fixture(scope="module")
def rsa_keys():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_key, public_pem


def make_token(private_key, **claims):
    payload = {"sub": "user_1", "exp": int(time.time()) + 60, **claims}
    return jwt.encode(payload, private_key, algorithm="RS256")


class TestClerkAuthenticator:
    def test_valid_signed_token(self, rsa_keys):
        private_key, public_pem = rsa_keys
        token = make_token(private_key, org_id="org_1", org_role="org:admin")

        claims = ClerkAuthenticator(public_key=public_pem).verify_token(token)

        assert claims["sub"] == "user_1"
        assert claims["org_role"] == "org:admin"

    def test_expired_token(self, rsa_keys):
        private_key, public_pem = rsa_keys
        token = make_token(private_key, exp=int(time.time()) - 3600)

        with pytest.raises(UnauthenticatedError):
            ClerkAuthenticator(public_key=public_pem).verify_token(token)

    def test_wrong_key(self, rsa_keys):
        _, public_pem = rsa_keys
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

        with pytest.raises(UnauthenticatedError):
            ClerkAuthenticator(public_key=public_pem).verify_token(make_token(other_key))

    def test_garbage_token(self, rsa_keys):
        with pytest.raises(UnauthenticatedError):
            ClerkAuthenticator(public_key=rsa_keys[1]).verify_token("not-a-jwt")

    def test_unverified_only_outside_production(self, rsa_keys, monkeypatch):
        token = make_token(rsa_keys[0])
        monkeypatch.setattr(settings, "clerk_jwt_key", None)
        authenticator = ClerkAuthenticator()

        monkeypatch.setattr(settings, "environment", EnvironmentEnum.testing)
        assert authenticator.verify_token(token)["sub"] == "user_1"

        monkeypatch.setattr(settings, "environment", EnvironmentEnum.production)
        with pytest.raises(UnauthenticatedError):
            authenticator.verify_token(token)
