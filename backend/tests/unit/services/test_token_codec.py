# tests/unit/services/test_token_codec.py
"""
Unit tests for SignedTokenCodec.

Time comes from a FrozenClock, so expiry boundaries are exact to the second.
"""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest
from jwt.utils import base64url_encode

from notes_auth.services._shared.ports import FrozenClock, SequenceRandom
from notes_auth.services._shared.result import Fail, FailureKind, Ok
from notes_auth.services.tokens import ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, SignedTokenCodec

SECRET = "codec-secret-0123456789abcdef0123"


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def codec(clock) -> SignedTokenCodec:
    return SignedTokenCodec(
        secret=SECRET,
        token_type=ACCESS_TOKEN_TYPE,
        default_ttl=timedelta(minutes=15),
        clock=clock,
        random=SequenceRandom(),
    )


def _sign(payload: dict) -> str:
    return jwt.encode(payload, SECRET, algorithm="HS256")


# -------------------------------- Tests ----------------------------------- #
def test_issue_then_verify_returns_claims(codec, clock):
    """A freshly issued token verifies and carries subject, type and window."""
    token = codec.issue("user-1")

    result = codec.verify(token)

    assert isinstance(result, Ok)
    claims = result.value
    assert claims.subject == "user-1"
    assert claims.token_type == ACCESS_TOKEN_TYPE
    assert claims.issued_at == clock.now()
    assert claims.expires_at - claims.issued_at == timedelta(minutes=15)
    assert claims.jti


def test_tokens_for_same_subject_and_instant_are_distinct(codec):
    assert codec.issue("user-1") != codec.issue("user-1")


def test_explicit_ttl_overrides_default(codec):
    _, claims = codec.issue_with_claims("user-1", timedelta(seconds=30))
    assert claims.expires_at - claims.issued_at == timedelta(seconds=30)


def test_valid_until_one_second_before_expiry(codec, clock):
    token = codec.issue("user-1", timedelta(seconds=60))
    clock.advance(seconds=59)
    assert isinstance(codec.verify(token), Ok)


def test_expired_exactly_at_expiry_and_carries_subject(codec, clock):
    """Expiry is strict: now == exp already counts as expired."""
    token = codec.issue("user-1", timedelta(seconds=60))
    clock.advance(seconds=60)

    result = codec.verify(token)

    assert isinstance(result, Fail)
    assert result.kind is FailureKind.EXPIRED
    assert result.subject == "user-1"


def test_other_secret_is_invalid_signature(codec, clock):
    other = SignedTokenCodec(
        secret="another-secret-0123456789abcdef-xyz",
        token_type=ACCESS_TOKEN_TYPE,
        default_ttl=timedelta(minutes=15),
        clock=clock,
        random=SequenceRandom(),
    )
    result = codec.verify(other.issue("user-1"))
    assert isinstance(result, Fail)
    assert result.kind is FailureKind.INVALID_SIGNATURE


def test_tampered_payload_is_rejected(codec):
    header, payload, signature = codec.issue("user-1").split(".")
    forged_payload = base64url_encode(
        b'{"sub":"admin","iat":1,"exp":9999999999,"type":"access","jti":"x"}'
    ).decode()

    result = codec.verify(f"{header}.{forged_payload}.{signature}")

    assert isinstance(result, Fail)
    assert result.kind is FailureKind.INVALID_SIGNATURE


@pytest.mark.parametrize("token", ["", "   ", "not-a-token", "a.b.c"])
def test_garbage_is_malformed(codec, token):
    result = codec.verify(token)
    assert isinstance(result, Fail)
    assert result.kind is FailureKind.MALFORMED


def test_wrong_token_type_is_malformed(codec, clock):
    """A refresh token signed with the same key is still not an access token."""
    refresh_codec = SignedTokenCodec(
        secret=SECRET,
        token_type=REFRESH_TOKEN_TYPE,
        default_ttl=timedelta(days=1),
        clock=clock,
        random=SequenceRandom(),
    )
    result = codec.verify(refresh_codec.issue("user-1"))
    assert isinstance(result, Fail)
    assert result.kind is FailureKind.MALFORMED


def test_missing_required_claim_is_malformed(codec, clock):
    now = int(clock.now().timestamp())
    token = _sign({"sub": "user-1", "iat": now, "exp": now + 60, "type": ACCESS_TOKEN_TYPE})
    result = codec.verify(token)
    assert isinstance(result, Fail)
    assert result.kind is FailureKind.MALFORMED


def test_exp_not_after_iat_is_malformed(codec, clock):
    now = int(clock.now().timestamp())
    token = _sign(
        {"sub": "user-1", "iat": now + 60, "exp": now + 60, "type": ACCESS_TOKEN_TYPE, "jti": "j"}
    )
    result = codec.verify(token)
    assert isinstance(result, Fail)
    assert result.kind is FailureKind.MALFORMED


@pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-5), timedelta(microseconds=-1)])
def test_issue_rejects_non_positive_ttl(codec, ttl):
    with pytest.raises(ValueError):
        codec.issue("user-1", ttl)


@pytest.mark.parametrize("ttl", [timedelta(microseconds=1), timedelta(milliseconds=500)])
def test_sub_second_ttl_rounds_up_to_one_second(codec, clock, ttl):
    token, claims = codec.issue_with_claims("user-1", ttl)

    assert claims.expires_at - claims.issued_at == timedelta(seconds=1)
    verified = codec.verify(token)
    assert isinstance(verified, Ok)
    assert verified.value.subject == "user-1"

    clock.advance(seconds=1)
    assert codec.verify(token).kind is FailureKind.EXPIRED


def test_fractional_ttl_is_never_shortened(codec):
    _, claims = codec.issue_with_claims("user-1", timedelta(seconds=1, milliseconds=200))
    assert claims.expires_at - claims.issued_at == timedelta(seconds=2)


def test_issue_rejects_empty_subject(codec):
    with pytest.raises(ValueError):
        codec.issue("")


def test_constructor_rejects_empty_secret(clock):
    with pytest.raises(ValueError):
        SignedTokenCodec(
            secret="",
            token_type=ACCESS_TOKEN_TYPE,
            default_ttl=timedelta(minutes=1),
            clock=clock,
            random=SequenceRandom(),
        )
