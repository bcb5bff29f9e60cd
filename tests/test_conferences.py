"""Tests for conference CRUD, fliers and date grouping."""

import base64
import inspect
import typing
from datetime import date
from unittest.mock import patch

import pytest

from nextgen_site.conferences import ConferenceService
from nextgen_site.errors import ConflictError, NotFoundError, ValidationError
from nextgen_site.models import Conference
from nextgen_site.pages import PageService
from nextgen_site.referral_codes import ReferralCodeService
from nextgen_site.registrations import RegistrationService
from nextgen_site.storage import CONFERENCES
from nextgen_site.users import UserService

FLIER_BYTES = b"\x89PNG\r\n\x1a\nfake-flier"
FLIER_DATA = "data:image/png;base64," + base64.b64encode(FLIER_BYTES).decode()


@pytest.fixture
def service(store, config) -> ConferenceService:
    return ConferenceService(store, config)


def _create(service, id="lagos-2026", date="2026-03-15", **kwargs):
    return service.create(
        id=id,
        title=kwargs.pop("title", "Lagos Youth Summit"),
        date=date,
        venue=kwargs.pop("venue", "Eko Hotel"),
        description=kwargs.pop("description", "Civic workshops"),
        **kwargs,
    )


class TestCreateConference:
    """Tests for ConferenceService.create."""

    def test_create_generates_qr_code(self, service):
        """Test that a new conference gets a PNG data URL QR code."""
        conference = _create(service)

        assert conference.qr_code.startswith("data:image/png;base64,")
        assert conference.created_at == conference.updated_at
        assert not conference.advertise_on_homepage
        assert service.get("lagos-2026").title == "Lagos Youth Summit"

    def test_qr_code_points_at_conference_page(self, service):
        """Test that the QR code encodes the public conference URL."""
        with patch("nextgen_site.conferences.conference_qr_code", return_value="data:qr") as mock_qr:
            conference = _create(service)

        mock_qr.assert_called_once_with("https://example.ng", "lagos-2026")
        assert conference.qr_code == "data:qr"

    def test_missing_fields(self, service):
        """Test that all five core fields are required."""
        with pytest.raises(ValidationError, match="Missing required fields"):
            _create(service, venue="")

    def test_duplicate_id(self, service):
        """Test that ids are unique."""
        _create(service)
        with pytest.raises(ConflictError):
            _create(service)

    @pytest.mark.parametrize("bad_id", ["../../data/users", "a/b", "lagos 2026", "..", "x.json", "lagos-2026\n"])
    def test_invalid_id_rejected(self, service, store, bad_id):
        """Test that ids outside letters, digits, hyphen and underscore are refused."""
        with pytest.raises(ValidationError, match="Invalid conference ID"):
            _create(service, id=bad_id, flier_data=FLIER_DATA, flier_name="x.png")
        assert store.read_list(CONFERENCES) == []

    def test_flier_saved(self, service, config):
        """Test that a base64 flier is written under conference-fliers."""
        conference = _create(service, flier_data=FLIER_DATA, flier_name="poster.PNG")

        assert conference.flier_url == "/conference-fliers/lagos-2026.png"
        assert (config.fliers_dir / "lagos-2026.png").read_bytes() == FLIER_BYTES

    def test_bad_flier_name_still_creates(self, service):
        """Test that a rejected flier does not block the conference."""
        conference = _create(service, flier_data=FLIER_DATA, flier_name="poster")

        assert conference.flier_url is None
        assert service.find("lagos-2026") is not None

    def test_unset_flier_not_serialized(self, service, store):
        """Test that flierUrl is omitted on disk when there is no flier."""
        _create(service)
        assert "flierUrl" not in store.read_list(CONFERENCES)[0]


class TestUpdateConference:
    """Tests for ConferenceService.update."""

    def test_update_in_place_keeps_qr(self, service):
        """Test that an update without rename keeps the QR code and position."""
        original = _create(service)
        _create(service, id="abuja-2026")

        updated = service.update(
            "lagos-2026", "lagos-2026", "New title", "2026-03-16", "Eko Hotel", "Updated",
        )

        assert updated.qr_code == original.qr_code
        assert updated.created_at == original.created_at
        assert [c.id for c in service.list()] == ["lagos-2026", "abuja-2026"]

    def test_rename_regenerates_qr_and_moves_to_end(self, service):
        """Test that renaming regenerates the QR code and appends the record."""
        _create(service)
        _create(service, id="abuja-2026")

        with patch("nextgen_site.conferences.conference_qr_code", return_value="data:new-qr") as mock_qr:
            updated = service.update(
                "lagos-2026", "lagos-2027", "Lagos", "2027-03-15", "Eko Hotel", "Next year",
            )

        mock_qr.assert_called_once_with("https://example.ng", "lagos-2027")
        assert updated.qr_code == "data:new-qr"
        assert [c.id for c in service.list()] == ["abuja-2026", "lagos-2027"]

    def test_rename_to_existing_id(self, service):
        """Test that renaming onto another conference's id is rejected."""
        _create(service)
        _create(service, id="abuja-2026")

        with pytest.raises(ConflictError):
            service.update("lagos-2026", "abuja-2026", "t", "2026-01-01", "v", "d")

    def test_rename_with_new_flier_deletes_old(self, service, config):
        """Test that the old flier file is removed when renamed with a new flier."""
        _create(service, flier_data=FLIER_DATA, flier_name="a.png")

        updated = service.update(
            "lagos-2026", "lagos-2027", "t", "2027-01-01", "v", "d",
            flier_data=FLIER_DATA, flier_name="b.jpg",
        )

        assert updated.flier_url == "/conference-fliers/lagos-2027.jpg"
        assert not (config.fliers_dir / "lagos-2026.png").exists()
        assert (config.fliers_dir / "lagos-2027.jpg").exists()

    def test_rename_to_invalid_id(self, service, config):
        """Test that a rename cannot place the flier outside conference-fliers."""
        _create(service)

        with pytest.raises(ValidationError, match="Invalid conference ID"):
            service.update(
                "lagos-2026", "../../data/users", "t", "2026-01-01", "v", "d",
                flier_data=FLIER_DATA, flier_name="x.json",
            )
        assert service.get("lagos-2026").title == "Lagos Youth Summit"
        assert not (config.data_dir / "users.json").exists()

    def test_advertise_flag_kept_when_omitted(self, service):
        """Test that advertiseOnHomepage keeps its value when not sent."""
        _create(service, advertise_on_homepage=True)

        updated = service.update("lagos-2026", "lagos-2026", "t", "2026-01-01", "v", "d")

        assert updated.advertise_on_homepage

    def test_update_unknown(self, service):
        """Test that updating a missing conference raises NotFoundError."""
        with pytest.raises(NotFoundError, match="Conference not found"):
            service.update("missing", "missing", "t", "2026-01-01", "v", "d")


class TestDeleteAndListing:
    """Tests for delete, advertised and categorize."""

    def test_delete(self, service):
        """Test that a deleted conference is gone."""
        _create(service)
        service.delete("lagos-2026")

        assert service.find("lagos-2026") is None
        with pytest.raises(NotFoundError):
            service.delete("lagos-2026")

    def test_advertised(self, service):
        """Test that only homepage-flagged conferences are advertised."""
        _create(service, advertise_on_homepage=True)
        _create(service, id="abuja-2026")

        assert [c.id for c in service.advertised()] == ["lagos-2026"]

    def test_categorize(self, service):
        """Test grouping and ordering by calendar date."""
        _create(service, id="old", date="2025-01-10")
        _create(service, id="older", date="2024-06-01")
        _create(service, id="today", date="2026-02-01T18:00:00Z")
        _create(service, id="far", date="2026-12-01")
        _create(service, id="near", date="2026-02-02")
        _create(service, id="tbd", date="to be announced")

        groups = service.categorize(today=date(2026, 2, 1))

        assert [c.id for c in groups.past] == ["old", "older"]
        assert [c.id for c in groups.current] == ["today"]
        assert [c.id for c in groups.upcoming] == ["near", "far", "tbd"]

    def test_regenerate_missing_qr_codes(self, service, store):
        """Test that only conferences without a QR code are filled in."""
        store.write_list(CONFERENCES, [
            {"id": "a", "title": "A", "date": "2026-01-01", "venue": "v", "description": "d", "qrCode": ""},
            {"id": "b", "title": "B", "date": "2026-01-01", "venue": "v", "description": "d", "qrCode": "data:x"},
        ])

        with patch("nextgen_site.conferences.conference_qr_code", return_value="data:filled"):
            updated = service.regenerate_missing_qr_codes()

        assert updated == ["a"]
        assert service.get("a").qr_code == "data:filled"
        assert service.get("b").qr_code == "data:x"


class TestServiceAnnotations:
    """Tests that service annotations resolve to builtins, not the list() methods."""

    @pytest.mark.parametrize("service_cls", [
        ConferenceService, PageService, ReferralCodeService, RegistrationService, UserService,
    ])
    def test_method_hints_resolve(self, service_cls):
        """Test that every method's annotations evaluate without error."""
        for _, method in inspect.getmembers(service_cls, inspect.isfunction):
            typing.get_type_hints(method)

    def test_list_return_types(self):
        """Test that list[...] after a list() method still means the builtin."""
        assert typing.get_type_hints(ConferenceService.advertised)["return"] == list[Conference]
        assert typing.get_type_hints(ConferenceService.regenerate_missing_qr_codes)["return"] == list[str]
