import pytest
from datetime import datetime, timedelta, timezone
from jose import jwt

from core.exceptions import BusinessError, ErrorCode
from models import UserRole
from services.session_credentials import SessionCredentialIssuer

SECRET = "test-secret-key-must-be-at-least-32-bytes-long"
FIXED_NOW = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


class MovableClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def make_issuer(expire_minutes=30, clock=None, secret=SECRET):
    kwargs = {"clock": clock} if clock else {}
    return SessionCredentialIssuer(
        app_id="test-app-id", secret=secret, expire_minutes=expire_minutes, **kwargs
    )


def test_issued_token_validates_for_its_consultation_and_participant():
    issuer = make_issuer()
    credential = issuer.issue(42, 7, "DOCTOR")

    assert issuer.validate(credential.token, 42, 7)
    assert not issuer.validate(credential.token, 42, 8)
    assert not issuer.validate(credential.token, 99, 7)


def test_credential_fields():
    clock = MovableClock(FIXED_NOW)
    credential = make_issuer(clock=clock).issue(42, 7, UserRole.PATIENT)

    assert credential.room_id == "room_42"
    assert credential.uid == "7"
    assert credential.app_id == "test-app-id"
    assert credential.expire_at == FIXED_NOW + timedelta(minutes=30)


def test_claims_are_readable_but_signed():
    clock = MovableClock(FIXED_NOW)
    credential = make_issuer(clock=clock).issue(42, 7, UserRole.DOCTOR_EXPERT)

    claims = jwt.get_unverified_claims(credential.token)
    assert claims["sub"] == "7"
    assert claims["room_id"] == "room_42"
    assert claims["consultation_id"] == 42
    assert claims["role"] == "DOCTOR_EXPERT"
    assert claims["app_id"] == "test-app-id"
    assert claims["iat"] == int(FIXED_NOW.timestamp())
    assert claims["exp"] == int((FIXED_NOW + timedelta(minutes=30)).timestamp())


def test_zero_minute_window_never_validates():
    issuer = make_issuer(expire_minutes=0)
    credential = issuer.issue(42, 7, "PATIENT")

    assert not issuer.validate(credential.token, 42, 7)


def test_credential_expires_at_the_end_of_its_window():
    clock = MovableClock(FIXED_NOW)
    issuer = make_issuer(clock=clock)
    credential = issuer.issue(42, 7, "PATIENT")

    clock.now = FIXED_NOW + timedelta(minutes=29, seconds=59)
    assert issuer.validate(credential.token, 42, 7)

    clock.now = FIXED_NOW + timedelta(minutes=30)
    assert not issuer.validate(credential.token, 42, 7)


def test_expiry_follows_the_issuer_clock_not_the_wall_clock():
    past = datetime(2020, 6, 1, 12, 0, tzinfo=timezone.utc)
    issuer = make_issuer(clock=MovableClock(past))
    credential = issuer.issue(42, 7, "PATIENT")

    assert issuer.validate(credential.token, 42, 7)


def test_consultation_id_type_does_not_matter():
    issuer = make_issuer()
    credential = issuer.issue("42", 7, "PATIENT")

    assert issuer.validate(credential.token, 42, 7)
    assert issuer.validate(credential.token, "42", "7")
    assert not issuer.validate(credential.token, 43, 7)


def test_token_without_consultation_claim_fails():
    token = jwt.encode({"sub": "7", "exp": 4102444800}, SECRET, algorithm="HS256")

    assert not make_issuer().validate(token, None, 7)


def test_room_id_is_shared_by_all_participants():
    issuer = make_issuer()
    patient = issuer.issue(42, 7, "PATIENT")
    doctor = issuer.issue(42, 8, "DOCTOR_PRIMARY")

    assert patient.room_id == doctor.room_id
    assert patient.token != doctor.token


def test_reissued_credentials_both_validate():
    issuer = make_issuer()
    first = issuer.issue(42, 7, "PATIENT")
    second = issuer.issue(42, 7, "PATIENT")

    assert issuer.validate(first.token, 42, 7)
    assert issuer.validate(second.token, 42, 7)


@pytest.mark.parametrize("tamper", ["TAMPERED", "xxx", "123", "!!!"])
def test_tampered_token_fails(tamper):
    issuer = make_issuer()
    token = issuer.issue(42, 7, "PATIENT").token
    mid = len(token) // 2

    assert not issuer.validate(token[:mid] + tamper + token[mid:], 42, 7)


def test_token_signed_with_another_secret_fails():
    other = make_issuer(secret="another-secret-key-that-is-long-enough-too")
    token = other.issue(42, 7, "PATIENT").token

    assert not make_issuer().validate(token, 42, 7)


def test_forged_claims_with_valid_structure_fail():
    claims = jwt.get_unverified_claims(make_issuer().issue(42, 7, "PATIENT").token)
    claims["sub"] = "8"
    forged = jwt.encode(claims, "not-the-secret", algorithm="HS256")

    assert not make_issuer().validate(forged, 42, 8)


def test_token_missing_required_claims_fails():
    token = jwt.encode({"consultation_id": 42}, SECRET, algorithm="HS256")

    assert not make_issuer().validate(token, 42, 7)


@pytest.mark.parametrize("token", [None, "", "not-a-token", "a.b.c", 12345])
def test_malformed_tokens_return_false(token):
    assert make_issuer().validate(token, 42, 7) is False


def test_validation_failure_is_logged(caplog):
    with caplog.at_level("WARNING", logger="services.session_credentials"):
        make_issuer().validate("a.b.c", 42, 7)

    assert "validation failed" in caplog.text


@pytest.mark.parametrize("consultation_id, participant_id", [
    (None, 7),
    (42, None),
    ("", 7),
    (42, "  "),
])
def test_issue_requires_consultation_and_participant(consultation_id, participant_id):
    with pytest.raises(BusinessError) as exc_info:
        make_issuer().issue(consultation_id, participant_id, "PATIENT")

    assert exc_info.value.error_code is ErrorCode.PARAM_ERROR


def test_issuer_requires_a_secret():
    with pytest.raises(ValueError):
        SessionCredentialIssuer(app_id="test-app-id", secret="")
