"""Email/PIN student verification.

Two interchangeable profiles implement the same contract (PIN issuance,
bounded validity window, single-use consumption, optional hashing at rest):

- ``VerificationWorkflow`` keeps the PIN on the user record itself.
- ``RequestVerificationWorkflow`` stores every attempt as its own
  ``VerificationRequest`` row keyed by a generated id, always hashing the PIN,
  and measures expiry from the recorded send time.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from . import config, crud, models
from .auth import check_pin, generate_pin, generate_token, hash_pin
from .errors import InvalidPin, NotFound, PinExpired, ValidationError
from .mailer import Mailer, pin_email
from .utils import normalize_email, sanitize_input, utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _require_identity(email, name, roll_number):
    email = normalize_email(email)
    name = sanitize_input(name)
    roll_number = sanitize_input(roll_number)
    if not email or not name or not roll_number:
        raise ValidationError("Missing required fields")
    return email, name, roll_number


class VerificationWorkflow:
    def __init__(self, db: Session, mailer: Mailer, clock: Clock = utcnow, settings: Optional[config.Settings] = None):
        self.db = db
        self.mailer = mailer
        self.clock = clock
        self.settings = settings or config.get_settings()

    def request_pin(self, email, name, roll_number, dob=None) -> dict:
        email, name, roll_number = _require_identity(email, name, roll_number)
        now = self.clock()
        user = crud.find_or_create_student(self.db, email, name, roll_number, dob, now)

        pin = generate_pin()
        # an unconsumed PIN from an earlier request is simply overwritten
        user.verification_pin = hash_pin(pin) if self.settings.hash_pins else pin
        user.pin_expiry = now + timedelta(minutes=self.settings.pin_ttl_minutes)
        crud.commit_or_conflict(self.db, "Roll number already registered to another email")

        subject, body = pin_email(name, pin, self.settings.pin_ttl_minutes)
        if self.mailer.send(email, subject, body):
            logger.info("verification PIN sent to %s", email)
            return {"message": "PIN sent to email", "email": email}

        result = {"message": "PIN generated (email not configured)", "email": email}
        if self.settings.expose_test_pin:
            logger.info("test PIN for %s: %s", email, pin)
            result["test_pin"] = pin
        return result

    def verify_pin(self, email, pin) -> dict:
        email = normalize_email(email)
        pin = str(pin).strip() if pin is not None else ""
        if not email or not pin:
            raise ValidationError("Missing email or PIN")

        user = crud.get_user_by_email(self.db, email)
        if not user:
            raise NotFound("User not found")
        if not user.verification_pin or user.pin_expiry is None:
            # never requested, or already consumed
            raise InvalidPin()
        if self.clock() > user.pin_expiry:
            logger.info("expired PIN submitted for %s", email)
            raise PinExpired()
        if not check_pin(pin, user.verification_pin, self.settings.hash_pins):
            logger.info("invalid PIN submitted for %s", email)
            raise InvalidPin()

        user.verified = True
        user.verification_pin = None
        user.pin_expiry = None
        user.updated_at = self.clock()
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("user %s verified", user.id)

        return {
            "message": "Verification successful",
            "token": generate_token(user.id),
            "user": {"id": user.id, "email": user.email, "name": user.name},
        }


class RequestVerificationWorkflow:
    def __init__(self, db: Session, mailer: Mailer, clock: Clock = utcnow, settings: Optional[config.Settings] = None):
        self.db = db
        self.mailer = mailer
        self.clock = clock
        self.settings = settings or config.get_settings()

    def create_request(self, email, name, roll_number, dob=None) -> dict:
        email, name, roll_number = _require_identity(email, name, roll_number)
        pin = generate_pin()
        request = models.VerificationRequest(
            id=uuid.uuid4().hex,
            email=email,
            name=name,
            roll_number=roll_number,
            dob=dob,
            pin_hash=hash_pin(pin),
            status=models.RequestStatus.PIN_SENT.value,
            sent_at=self.clock(),
        )
        self.db.add(request)
        self.db.commit()

        subject, body = pin_email(name, pin, self.settings.pin_ttl_minutes)
        if self.mailer.send(email, subject, body):
            logger.info("verification request %s: PIN sent to %s", request.id, email)
            return {"message": "PIN sent to email", "request_id": request.id}

        result = {"message": "PIN generated (email not configured)", "request_id": request.id}
        if self.settings.expose_test_pin:
            logger.info("test PIN for request %s: %s", request.id, pin)
            result["test_pin"] = pin
        return result

    def verify_request(self, request_id, pin) -> dict:
        pin = str(pin).strip() if pin is not None else ""
        if not request_id or not pin:
            raise ValidationError("requestId and pin are required")

        request = self.db.get(models.VerificationRequest, request_id)
        if not request:
            raise NotFound("Request not found")
        if request.status == models.RequestStatus.EXPIRED.value:
            raise PinExpired()
        if request.status != models.RequestStatus.PIN_SENT.value or not request.pin_hash:
            # consumed
            raise InvalidPin()

        now = self.clock()
        if now - request.sent_at > timedelta(minutes=self.settings.pin_ttl_minutes):
            request.status = models.RequestStatus.EXPIRED.value
            self.db.commit()
            logger.info("verification request %s expired", request_id)
            raise PinExpired()
        if not check_pin(pin, request.pin_hash, hashed=True):
            logger.info("invalid PIN submitted for request %s", request_id)
            raise InvalidPin()

        request.status = models.RequestStatus.VERIFIED.value
        request.pin_hash = None
        request.verified_at = now
        student = models.VerifiedStudent(
            name=request.name,
            email=request.email,
            roll_number=request.roll_number,
            dob=request.dob,
            request_id=request.id,
            verified_at=now,
        )
        self.db.add(student)
        self.db.commit()
        self.db.refresh(student)
        logger.info("verification request %s verified as student %s", request_id, student.id)
        return {"success": True, "user_id": student.id}
