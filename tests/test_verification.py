import itertools

import pytest

from canteen import config, models
from canteen.auth import verify_token

ALICE = {"email": "alice@example.com", "name": "Alice", "rollNumber": "CS101", "dob": "2003-05-01"}


def stored_user(db_session, email="alice@example.com"):
    return db_session.query(models.User).filter(models.User.email == email).one()


@pytest.fixture
def fixed_pins(monkeypatch):
    pins = itertools.cycle(["111111", "222222", "333333"])
    monkeypatch.setattr("canteen.verification.generate_pin", lambda: next(pins))


def test_request_and_verify_new_student(client, db_session, mailer):
    r = client.post("/auth/request-pin", json=ALICE)
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "alice@example.com"
    assert body["message"] == "PIN generated (email not configured)"
    pin = body["testPin"]
    assert len(pin) == 6 and pin.isdigit()
    assert pin in mailer.sent[0][2]

    user = stored_user(db_session)
    assert user.verified is False
    assert user.verification_pin == pin
    assert user.pin_expiry is not None

    r = client.post("/auth/verify-pin", json={"email": "alice@example.com", "pin": pin})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Verification successful"
    assert body["user"] == {"id": user.id, "email": "alice@example.com", "name": "Alice"}
    assert verify_token(body["token"]) == str(user.id)

    user = stored_user(db_session)
    assert user.verified is True
    assert user.verification_pin is None
    assert user.pin_expiry is None


def test_pin_is_single_use(client):
    pin = client.post("/auth/request-pin", json=ALICE).json()["testPin"]
    assert client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": pin}).status_code == 200

    r = client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": pin})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid PIN"}


def test_pin_valid_until_window_closes(client, clock):
    pin = client.post("/auth/request-pin", json=ALICE).json()["testPin"]
    clock.advance(minutes=15)
    r = client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": pin})
    assert r.status_code == 200


def test_expired_pin_rejected_regardless_of_value(client, clock, db_session):
    pin = client.post("/auth/request-pin", json=ALICE).json()["testPin"]
    clock.advance(minutes=15, seconds=1)

    for attempt in (pin, "000000"):
        r = client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": attempt})
        assert r.status_code == 400
        assert r.json() == {"error": "PIN expired"}
    assert stored_user(db_session).verified is False


def test_verify_with_wrong_email(client):
    pin = client.post("/auth/request-pin", json=ALICE).json()["testPin"]
    r = client.post("/auth/verify-pin", json={"email": "mallory@example.com", "pin": pin})
    assert r.status_code == 404
    assert r.json() == {"error": "User not found"}


def test_verify_with_wrong_pin(client, db_session):
    client.post("/auth/request-pin", json=ALICE)
    r = client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": "000000"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid PIN"}
    assert stored_user(db_session).verification_pin is not None


@pytest.mark.parametrize("missing", ["email", "name", "rollNumber"])
def test_request_pin_missing_fields(client, missing):
    payload = {k: v for k, v in ALICE.items() if k != missing}
    r = client.post("/auth/request-pin", json=payload)
    assert r.status_code == 400
    assert r.json() == {"error": "Missing required fields"}


def test_verify_pin_missing_fields(client):
    r = client.post("/auth/verify-pin", json={"email": ALICE["email"]})
    assert r.status_code == 400
    assert r.json() == {"error": "Missing email or PIN"}


def test_second_request_overwrites_pin(client, db_session, fixed_pins):
    first = client.post("/auth/request-pin", json=ALICE).json()["testPin"]
    second = client.post("/auth/request-pin", json={**ALICE, "name": "Alice Liddell"}).json()["testPin"]
    assert (first, second) == ("111111", "222222")

    assert stored_user(db_session).name == "Alice Liddell"
    r = client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": first})
    assert r.status_code == 400
    r = client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": second})
    assert r.status_code == 200


def test_email_is_normalised(client, db_session):
    r = client.post("/auth/request-pin", json={**ALICE, "email": "  Alice@Example.COM "})
    assert r.json()["email"] == "alice@example.com"
    pin = r.json()["testPin"]
    r = client.post("/auth/verify-pin", json={"email": "ALICE@example.com", "pin": pin})
    assert r.status_code == 200


def test_roll_number_taken_by_other_email(client):
    client.post("/auth/request-pin", json=ALICE)
    r = client.post("/auth/request-pin", json={**ALICE, "email": "bob@example.com", "name": "Bob"})
    assert r.status_code == 409
    assert "error" in r.json()


def test_delivered_mail_hides_pin(client, db_session, mailer):
    mailer.delivers = True
    r = client.post("/auth/request-pin", json=ALICE)
    assert r.status_code == 200
    assert r.json() == {"message": "PIN sent to email", "email": "alice@example.com"}

    to, subject, body = mailer.sent[0]
    assert to == "alice@example.com"
    assert "PIN" in subject
    assert stored_user(db_session).verification_pin in body


def test_degraded_mode_without_pin_exposure(client):
    config.override(expose_test_pin=False)
    r = client.post("/auth/request-pin", json=ALICE)
    assert r.status_code == 200
    assert "testPin" not in r.json()


def test_hashed_pins_at_rest(client, db_session):
    config.override(hash_pins=True)
    pin = client.post("/auth/request-pin", json=ALICE).json()["testPin"]
    stored = stored_user(db_session).verification_pin
    assert stored != pin
    assert stored.startswith("$pbkdf2-sha256$")

    assert client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": "000000"}).status_code == 400
    assert client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": pin}).status_code == 200


def test_me_requires_bearer_token(client):
    pin = client.post("/auth/request-pin", json=ALICE).json()["testPin"]
    token = client.post("/auth/verify-pin", json={"email": ALICE["email"], "pin": pin}).json()["token"]

    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    me = r.json()
    assert me["email"] == "alice@example.com"
    assert me["rollNumber"] == "CS101"
    assert me["verified"] is True
    assert me["role"] == "student"
    assert "verificationPin" not in me

    r = client.get("/auth/me")
    assert r.status_code == 401
    assert r.json() == {"error": "No token provided"}

    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid or expired token"}


# -------------------- request-record profile --------------------

def test_verification_request_flow(client, db_session):
    r = client.post("/auth/verification-requests", json=ALICE)
    assert r.status_code == 201
    body = r.json()
    request_id, pin = body["requestId"], body["testPin"]

    request = db_session.get(models.VerificationRequest, request_id)
    assert request.status == "pin_sent"
    assert request.pin_hash and request.pin_hash != pin

    r = client.post("/auth/verification-requests/verify", json={"requestId": request_id, "pin": pin})
    assert r.status_code == 200
    assert r.json()["success"] is True
    student = db_session.get(models.VerifiedStudent, r.json()["userId"])
    assert student.email == "alice@example.com"
    assert student.request_id == request_id

    request = db_session.get(models.VerificationRequest, request_id)
    assert request.status == "verified"
    assert request.pin_hash is None

    # single use
    r = client.post("/auth/verification-requests/verify", json={"requestId": request_id, "pin": pin})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid PIN"}
    assert db_session.query(models.VerifiedStudent).count() == 1


def test_verification_request_wrong_pin_then_right(client):
    body = client.post("/auth/verification-requests", json=ALICE).json()
    r = client.post("/auth/verification-requests/verify", json={"requestId": body["requestId"], "pin": "000000"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid PIN"}
    r = client.post("/auth/verification-requests/verify", json={"requestId": body["requestId"], "pin": body["testPin"]})
    assert r.status_code == 200


def test_verification_request_expires(client, clock, db_session):
    body = client.post("/auth/verification-requests", json=ALICE).json()
    clock.advance(minutes=16)
    r = client.post("/auth/verification-requests/verify", json={"requestId": body["requestId"], "pin": body["testPin"]})
    assert r.status_code == 400
    assert r.json() == {"error": "PIN expired"}
    assert db_session.get(models.VerificationRequest, body["requestId"]).status == "expired"


def test_expired_request_stays_expired_on_retry(client, clock):
    body = client.post("/auth/verification-requests", json=ALICE).json()
    clock.advance(minutes=16)
    attempt = {"requestId": body["requestId"], "pin": body["testPin"]}
    for _ in range(2):
        r = client.post("/auth/verification-requests/verify", json=attempt)
        assert r.status_code == 400
        assert r.json() == {"error": "PIN expired"}

    r = client.post("/auth/verification-requests/verify", json={**attempt, "pin": "000000"})
    assert r.json() == {"error": "PIN expired"}


def test_verification_request_unknown_and_missing(client):
    r = client.post("/auth/verification-requests/verify", json={"requestId": "nope", "pin": "123456"})
    assert r.status_code == 404
    assert r.json() == {"error": "Request not found"}

    r = client.post("/auth/verification-requests/verify", json={"pin": "123456"})
    assert r.status_code == 400
    assert r.json() == {"error": "requestId and pin are required"}

    r = client.post("/auth/verification-requests", json={"email": "alice@example.com"})
    assert r.status_code == 400
