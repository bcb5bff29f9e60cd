"""
Referral codes handed out to field volunteers. Attendees quote a code when
registering so sign-ups can be credited to the volunteer who brought them.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .errors import ConflictError, NotFoundError, ValidationError
from .models import ReferralCode, utc_now_iso
from .storage import REFERRAL_CODES, JSONStore

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Z0-9]{5}$")
INITIAL_CODE_COUNT = 50


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def initial_codes(count: int = INITIAL_CODE_COUNT) -> list[ReferralCode]:
    """The seed codes NGN01..NGN{count} with placeholder owners."""
    now = utc_now_iso()
    codes = []
    for n in range(1, count + 1):
        nn = f"{n:02d}"
        codes.append(ReferralCode(
            code=f"NGN{nn}",
            owner_name=f"User {nn}",
            owner_phone=f"+234 80{nn} 000 00{nn}",
            created_at=now,
        ))
    return codes


class ReferralCodeService:
    """CRUD over referral-codes.json."""

    def __init__(self, store: JSONStore):
        self.store = store

    def _read(self) -> list[ReferralCode]:
        return [ReferralCode.from_dict(c) for c in self.store.read_list(REFERRAL_CODES)]

    def _write(self, codes: list[ReferralCode]) -> None:
        self.store.write_list(REFERRAL_CODES, [c.to_dict() for c in codes])

    def list(self) -> list[ReferralCode]:
        return self._read()

    def find(self, code: Optional[str]) -> Optional[ReferralCode]:
        wanted = normalize_code(code)
        for referral in self._read():
            if referral.code.upper() == wanted:
                return referral
        return None

    def get(self, code: str) -> ReferralCode:
        referral = self.find(code)
        if referral is None:
            raise NotFoundError("Referral code not found")
        return referral

    def validate(self, code: Optional[str]) -> bool:
        """True when the code exists (case-insensitive)."""
        return bool(code) and self.find(code) is not None

    def create(
        self,
        code: Optional[str],
        owner_name: Optional[str],
        owner_phone: Optional[str],
    ) -> ReferralCode:
        if not code or not owner_name or not owner_phone:
            raise ValidationError(
                "Missing required fields: code, ownerName, and ownerPhone are required"
            )

        normalized = normalize_code(code)
        if not CODE_PATTERN.match(normalized):
            raise ValidationError("Code must be exactly 5 uppercase alphanumeric characters")

        codes = self._read()
        if any(c.code.upper() == normalized for c in codes):
            raise ConflictError("A referral code with this code already exists")

        referral = ReferralCode(
            code=normalized,
            owner_name=owner_name.strip(),
            owner_phone=owner_phone.strip(),
            created_at=utc_now_iso(),
        )
        codes.append(referral)
        self._write(codes)
        logger.info(f"Created referral code {normalized}")
        return referral

    def update(
        self,
        code: str,
        owner_name: Optional[str],
        owner_phone: Optional[str],
    ) -> ReferralCode:
        """Reassign a code's owner. The code itself never changes."""
        if not owner_name or not owner_phone:
            raise ValidationError(
                "Missing required fields: ownerName and ownerPhone are required"
            )

        wanted = normalize_code(code)
        codes = self._read()
        for referral in codes:
            if referral.code.upper() == wanted:
                referral.owner_name = owner_name.strip()
                referral.owner_phone = owner_phone.strip()
                self._write(codes)
                logger.info(f"Updated referral code {wanted}")
                return referral
        raise NotFoundError("Referral code not found")

    def delete(self, code: str) -> None:
        wanted = normalize_code(code)
        codes = self._read()
        remaining = [c for c in codes if c.code.upper() != wanted]
        if len(remaining) == len(codes):
            raise NotFoundError("Referral code not found")
        self._write(remaining)
        logger.info(f"Deleted referral code {wanted}")

    def reset(self, count: int = INITIAL_CODE_COUNT) -> int:
        """Replace every code with the initial seed set. Returns the count written."""
        codes = initial_codes(count)
        self._write(codes)
        return len(codes)
