"""
Conference listings: CRUD, QR code and flier handling, and the
past/current/upcoming grouping used by the public site.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .config import SiteConfig
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Conference, utc_now_iso
from .qr import conference_qr_code
from .storage import CONFERENCES, JSONStore
from .uploads import delete_public_file, save_flier

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = (
    "Missing required fields: id, title, date, venue, and description are required"
)

# Ids become URL path segments and flier file names.
CONFERENCE_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def validate_conference_id(conference_id: str) -> None:
    if not CONFERENCE_ID_PATTERN.fullmatch(conference_id):
        raise ValidationError(
            "Invalid conference ID. Use only letters, numbers, hyphens and underscores"
        )


@dataclass
class ConferenceGroups:
    """Conferences split by date relative to today."""
    past: list[Conference] = field(default_factory=list)
    current: list[Conference] = field(default_factory=list)
    upcoming: list[Conference] = field(default_factory=list)


class ConferenceService:
    """Read-modify-write operations on conferences.json."""

    def __init__(self, store: JSONStore, config: SiteConfig):
        self.store = store
        self.config = config

    def _read(self) -> list[Conference]:
        return [Conference.from_dict(c) for c in self.store.read_list(CONFERENCES)]

    def _write(self, conferences: list[Conference]) -> None:
        self.store.write_list(CONFERENCES, [c.to_dict() for c in conferences])

    @staticmethod
    def _index_of(conferences: list[Conference], conference_id: str) -> int:
        for index, conference in enumerate(conferences):
            if conference.id == conference_id:
                return index
        raise NotFoundError("Conference not found")

    def list(self) -> list[Conference]:
        return self._read()

    def get(self, conference_id: str) -> Conference:
        conferences = self._read()
        return conferences[self._index_of(conferences, conference_id)]

    def find(self, conference_id: str) -> Optional[Conference]:
        try:
            return self.get(conference_id)
        except NotFoundError:
            return None

    def create(
        self,
        id: Optional[str],
        title: Optional[str],
        date: Optional[str],
        venue: Optional[str],
        description: Optional[str],
        flier_data: Optional[str] = None,
        flier_name: Optional[str] = None,
        advertise_on_homepage: Optional[bool] = None,
    ) -> Conference:
        """
        Create a conference and generate its QR code.

        Raises:
            ValidationError: If any of the five core fields is missing.
            ConflictError: If the id is already used.
        """
        if not all([id, title, date, venue, description]):
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        validate_conference_id(id)

        conferences = self._read()
        if any(c.id == id for c in conferences):
            raise ConflictError("A conference with this ID already exists")

        flier_url = None
        if flier_data and flier_name:
            flier_url = save_flier(self.config.public_dir, id, flier_data, flier_name)

        now = utc_now_iso()
        conference = Conference(
            id=id,
            title=title,
            date=date,
            venue=venue,
            description=description,
            qr_code=conference_qr_code(self.config.base_url, id),
            flier_url=flier_url,
            advertise_on_homepage=bool(advertise_on_homepage),
            created_at=now,
            updated_at=now,
        )
        conferences.append(conference)
        self._write(conferences)
        logger.info(f"Created conference {id}")
        return conference

    def update(
        self,
        conference_id: str,
        new_id: Optional[str],
        title: Optional[str],
        date: Optional[str],
        venue: Optional[str],
        description: Optional[str],
        flier_data: Optional[str] = None,
        flier_name: Optional[str] = None,
        advertise_on_homepage: Optional[bool] = None,
    ) -> Conference:
        """
        Update a conference, possibly renaming its id.

        A rename regenerates the QR code and moves the record to the end of
        the collection. A new flier uploaded together with a rename replaces
        the old flier file.
        """
        if not all([new_id, title, date, venue, description]):
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        validate_conference_id(new_id)

        conferences = self._read()
        index = self._index_of(conferences, conference_id)
        existing = conferences[index]
        renamed = new_id != conference_id

        if renamed and any(c.id == new_id for c in conferences):
            raise ConflictError("A conference with this ID already exists")

        qr_code = conference_qr_code(self.config.base_url, new_id) if renamed else existing.qr_code

        flier_url = existing.flier_url
        if flier_data and flier_name:
            if flier_url and renamed:
                delete_public_file(self.config.public_dir, flier_url)
            saved = save_flier(self.config.public_dir, new_id, flier_data, flier_name)
            if saved:
                flier_url = saved

        updated = Conference(
            id=new_id,
            title=title,
            date=date,
            venue=venue,
            description=description,
            qr_code=qr_code,
            flier_url=flier_url,
            advertise_on_homepage=(
                existing.advertise_on_homepage
                if advertise_on_homepage is None
                else bool(advertise_on_homepage)
            ),
            created_at=existing.created_at,
            updated_at=utc_now_iso(),
        )

        if renamed:
            del conferences[index]
            conferences.append(updated)
        else:
            conferences[index] = updated

        self._write(conferences)
        logger.info(f"Updated conference {conference_id}" + (f" -> {new_id}" if renamed else ""))
        return updated

    def delete(self, conference_id: str) -> None:
        conferences = self._read()
        del conferences[self._index_of(conferences, conference_id)]
        self._write(conferences)
        logger.info(f"Deleted conference {conference_id}")

    def advertised(self) -> list[Conference]:
        """Conferences flagged for the homepage."""
        return [c for c in self._read() if c.advertise_on_homepage]

    def categorize(self, today: Optional[date] = None) -> ConferenceGroups:
        """
        Split conferences into past, current and upcoming by calendar date.

        Past is sorted newest first, upcoming soonest first. Conferences
        with an unparseable date are listed as upcoming.
        """
        today = today or date.today()
        today_dt = datetime(today.year, today.month, today.day)
        groups = ConferenceGroups()

        for conference in self._read():
            day = conference.date_only
            if day is None:
                groups.upcoming.append(conference)
            elif day < today_dt:
                groups.past.append(conference)
            elif day == today_dt:
                groups.current.append(conference)
            else:
                groups.upcoming.append(conference)

        groups.past.sort(key=lambda c: c.date_only, reverse=True)
        groups.upcoming.sort(key=lambda c: c.date_only or datetime.max)
        return groups

    def regenerate_missing_qr_codes(self) -> list[str]:
        """Fill in QR codes for conferences that lack one. Returns the updated ids."""
        conferences = self._read()
        updated = []
        for conference in conferences:
            if not conference.qr_code:
                conference.qr_code = conference_qr_code(self.config.base_url, conference.id)
                updated.append(conference.id)
        if updated:
            self._write(conferences)
        return updated
