"""Tests for actor identity resolution."""

import time

import jwt
import pytest
from flask import Flask

from app.config import JWT_SECRET
from app.routes.auth_decorators import IdentityError, get_actor_identity, normalize_address
from tests.helpers import OWNER

MIXED_CASE = "0x" + "AbCdEf" * 6 + "AbCd"


@pytest.fixture
def flask_app():
    return Flask(__name__)


def identity(flask_app, headers):
    with flask_app.test_request_context(headers=headers):
        return get_actor_identity()


class TestNormalizeAddress:

    def test_lowercases(self):
        assert normalize_address(f"  {MIXED_CASE} ") == MIXED_CASE.lower()

    def test_empty(self):
        assert normalize_address("") is None
        assert normalize_address(None) is None

    @pytest.mark.parametrize("value", ["0x123", "abc", "0x" + "g" * 40])
    def test_invalid(self, value):
        with pytest.raises(IdentityError):
            normalize_address(value)


class TestGetActorIdentity:

    def test_wallet_header(self, flask_app):
        assert identity(flask_app, {"X-Wallet-Address": MIXED_CASE}) == MIXED_CASE.lower()

    def test_no_credentials(self, flask_app):
        assert identity(flask_app, {}) is None

    def test_bearer_token(self, flask_app):
        token = jwt.encode({"address": OWNER}, JWT_SECRET, algorithm="HS256")
        assert identity(flask_app, {"Authorization": f"Bearer {token}"}) == OWNER

    def test_bearer_wins_over_header(self, flask_app):
        token = jwt.encode({"wallet_address": OWNER}, JWT_SECRET, algorithm="HS256")
        headers = {"Authorization": f"Bearer {token}", "X-Wallet-Address": MIXED_CASE}
        assert identity(flask_app, headers) == OWNER

    def test_expired_token(self, flask_app):
        token = jwt.encode({"address": OWNER, "exp": int(time.time()) - 60},
                           JWT_SECRET, algorithm="HS256")
        with pytest.raises(IdentityError):
            identity(flask_app, {"Authorization": f"Bearer {token}"})

    def test_wrong_secret(self, flask_app):
        token = jwt.encode({"address": OWNER}, "another-secret-also-32-bytes-long",
                           algorithm="HS256")
        with pytest.raises(IdentityError):
            identity(flask_app, {"Authorization": f"Bearer {token}"})

    def test_token_without_address(self, flask_app):
        token = jwt.encode({"sub": "user-1"}, JWT_SECRET, algorithm="HS256")
        with pytest.raises(IdentityError):
            identity(flask_app, {"Authorization": f"Bearer {token}"})
