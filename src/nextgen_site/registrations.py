"""
Conference registrations (attendance.json): the public sign-up form and the
admin check-in list.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Optional

from .errors import NotFoundError, ValidationError
from .models import Registration, timestamp_id, utc_now_iso
from .referral_codes import ReferralCodeService, normalize_code
from .storage import ATTENDANCE, JSONStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Marker for "check in at the current time"
NOW = object()


class RegistrationService:
    """Create, list, check in and delete registrations."""

    def __init__(self, store: JSONStore, referral_codes: Optional[ReferralCodeService] = None):
        self.store = store
        self.referral_codes = referral_codes or ReferralCodeService(store)

    def _read(self) -> list[Registration]:
        return [Registration.from_dict(r) for r in self.store.read_list(ATTENDANCE)]

    def _write(self, registrations: list[Registration]) -> None:
        self.store.write_list(ATTENDANCE, [r.to_dict() for r in registrations])

    def register(
        self,
        conference_id: Optional[str],
        name: Optional[str],
        email: Optional[str],
        phone: Optional[str],
        is_registered_voter: Optional[bool],
        referral_code: Optional[str] = None,
    ) -> Registration:
        """
        Record a registration from the public conference page.

        Args:
            conference_id: Conference being registered for.
            name: Attendee name.
            email: Attendee email, checked for a basic user@host.tld shape.
            phone: Attendee phone number.
            is_registered_voter: Must be an actual boolean, not a truthy value.
            referral_code: Optional volunteer code; must exist when given.

        Raises:
            ValidationError: On missing fields, a bad email or an unknown
                referral code.
        """
        if (
            not conference_id
            or not name
            or not email
            or not phone
            or not isinstance(is_registered_voter, bool)
        ):
            raise ValidationError(
                "Missing required fields: conference_id, name, email, phone, "
                "and isRegisteredVoter are required"
            )

        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")

        stored_code = None
        if referral_code:
            if not self.referral_codes.validate(referral_code):
                raise ValidationError("Invalid referral code")
            stored_code = normalize_code(referral_code)

        registration = Registration(
            id=timestamp_id(),
            conference_id=conference_id,
            name=name,
            email=email,
            phone=phone,
            is_registered_voter=is_registered_voter,
            referral_code=stored_code,
            timestamp=utc_now_iso(),
            attended_at=None,
        )
        registrations = self._read()
        registrations.append(registration)
        self._write(registrations)
        logger.info(f"Registration {registration.id} recorded for conference {conference_id}")
        return registration

    def list(self, conference_id: Optional[str] = None) -> list[Registration]:
        registrations = self._read()
        if conference_id:
            registrations = [r for r in registrations if r.conference_id == conference_id]
        return registrations

    def count(self) -> int:
        return self.store.count(ATTENDANCE)

    def mark_attended(self, registration_id: Optional[str], attended_at: Optional[str] = NOW) -> Registration:
        """
        Set a registration's check-in time.

        With no `attended_at` the current time is used; an explicit None
        clears the check-in.
        """
        if not registration_id:
            raise ValidationError("Missing required field: id")

        registrations = self._read()
        for registration in registrations:
            if registration.id == str(registration_id):
                registration.attended_at = utc_now_iso() if attended_at is NOW else attended_at
                self._write(registrations)
                return registration
        raise NotFoundError("Registration not found")

    def delete(self, registration_id: Optional[str]) -> None:
        if not registration_id:
            raise ValidationError("Missing required field: id")

        registrations = self._read()
        remaining = [r for r in registrations if r.id != str(registration_id)]
        if len(remaining) == len(registrations):
            raise NotFoundError("Registration not found")
        self._write(remaining)
        logger.info(f"Deleted registration {registration_id}")

    def stats_by_referral(self) -> dict[str, int]:
        """Number of registrations credited to each referral code, most first."""
        counts = Counter(r.referral_code for r in self._read() if r.referral_code)
        return dict(counts.most_common())

    def clear(self) -> None:
        self.store.reset_collection(ATTENDANCE, [])
