"""
Static content pages.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import ConflictError, NotFoundError, ValidationError
from .models import Page, PageStatus, timestamp_id, utc_now_iso
from .storage import PAGES, JSONStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Missing required fields: title, slug, and body are required"


def _parse_status(value: Optional[str], fallback: PageStatus) -> PageStatus:
    if not value:
        return fallback
    try:
        return PageStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(s.value for s in PageStatus)}"
        )


class PageService:
    """CRUD over pages.json."""

    def __init__(self, store: JSONStore):
        self.store = store

    def _read(self) -> list[Page]:
        return [Page.from_dict(p) for p in self.store.read_list(PAGES)]

    def _write(self, pages: list[Page]) -> None:
        self.store.write_list(PAGES, [p.to_dict() for p in pages])

    def list(self) -> list[Page]:
        return self._read()

    def get(self, page_id: str) -> Page:
        for page in self._read():
            if page.id == page_id:
                return page
        raise NotFoundError("Page not found")

    def get_by_slug(self, slug: str) -> Optional[Page]:
        for page in self._read():
            if page.slug == slug:
                return page
        return None

    def create(
        self,
        title: Optional[str],
        slug: Optional[str],
        body: Optional[str],
        hero_image: Optional[str] = None,
        meta_description: Optional[str] = None,
        meta_keywords: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Page:
        """
        Create a page. Status defaults to draft; blank optional fields are
        not stored.
        """
        if not title or not slug or not body:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)

        pages = self._read()
        if any(p.slug == slug for p in pages):
            raise ConflictError("A page with this slug already exists")

        now = utc_now_iso()
        page = Page(
            id=timestamp_id(),
            title=title,
            slug=slug,
            body=body,
            hero_image=hero_image or None,
            meta_description=meta_description or None,
            meta_keywords=meta_keywords or None,
            status=_parse_status(status, PageStatus.DRAFT),
            created_at=now,
            updated_at=now,
        )
        pages.append(page)
        self._write(pages)
        logger.info(f"Created page {page.slug} ({page.status.value})")
        return page

    def update(
        self,
        page_id: str,
        title: Optional[str],
        slug: Optional[str],
        body: Optional[str],
        hero_image: Optional[str] = None,
        meta_description: Optional[str] = None,
        meta_keywords: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Page:
        """Replace a page's content. An omitted status keeps the current one."""
        if not title or not slug or not body:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)

        pages = self._read()
        for index, existing in enumerate(pages):
            if existing.id == page_id:
                break
        else:
            raise NotFoundError("Page not found")

        if any(p.slug == slug and p.id != page_id for p in pages):
            raise ConflictError("A page with this slug already exists")

        updated = Page(
            id=existing.id,
            title=title,
            slug=slug,
            body=body,
            hero_image=hero_image or None,
            meta_description=meta_description or None,
            meta_keywords=meta_keywords or None,
            status=_parse_status(status, existing.status),
            created_at=existing.created_at,
            updated_at=utc_now_iso(),
        )
        pages[index] = updated
        self._write(pages)
        logger.info(f"Updated page {page_id}")
        return updated

    def delete(self, page_id: str) -> None:
        pages = self._read()
        remaining = [p for p in pages if p.id != page_id]
        if len(remaining) == len(pages):
            raise NotFoundError("Page not found")
        self._write(remaining)
        logger.info(f"Deleted page {page_id}")
