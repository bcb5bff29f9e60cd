"""
File uploads stored under the public directory: conference fliers and the
site logo.
"""

import base64
import binascii
import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from .errors import NotFoundError, UploadError

logger = logging.getLogger(__name__)

FLIERS_SUBDIR = "conference-fliers"
LOGO_FILENAME = "nextgen-logo.png"
DEFAULT_LOGO_FILENAME = "nextgen-logo-default.png"

ALLOWED_LOGO_TYPES = ("image/png", "image/jpeg", "image/jpg", "image/svg+xml")
MAX_LOGO_BYTES = 2 * 1024 * 1024

DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")
SAFE_EXTENSION = re.compile(r"^[A-Za-z0-9]{1,8}$")


def decode_data_url(data: str) -> bytes:
    """Decode a base64 image payload, with or without a data: prefix."""
    payload = DATA_URL_PREFIX.sub("", data.strip())
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise UploadError(f"Invalid image data: {e}")


def flier_extension(flier_name: str) -> str:
    extension = flier_name.rsplit(".", 1)[-1] if "." in flier_name else ""
    if not SAFE_EXTENSION.match(extension):
        raise UploadError(f"Unsupported flier file name: {flier_name}")
    return extension.lower()


def save_flier(
    public_dir: Path,
    conference_id: str,
    flier_data: str,
    flier_name: str,
) -> Optional[str]:
    """
    Save a base64-encoded flier as public/conference-fliers/{id}.{ext}.

    Returns:
        Public URL of the saved flier, or None when saving failed. Failure
        is logged but not raised; the caller keeps the previous flier.
    """
    try:
        content = decode_data_url(flier_data)
        extension = flier_extension(flier_name)
        fliers_dir = Path(public_dir) / FLIERS_SUBDIR
        fliers_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{conference_id}.{extension}"
        target = (fliers_dir / filename).resolve()
        if target.parent != fliers_dir.resolve():
            raise UploadError(f"Refusing to write flier outside {FLIERS_SUBDIR}: {filename}")
        target.write_bytes(content)
    except (UploadError, OSError) as e:
        logger.error(f"Error saving flier for {conference_id}: {e}")
        return None
    return f"/{FLIERS_SUBDIR}/{filename}"


def delete_public_file(public_dir: Path, url: Optional[str]) -> bool:
    """Delete a file referenced by a public URL. Returns True if a file was removed."""
    if not url:
        return False
    public_root = Path(public_dir).resolve()
    target = (public_root / url.lstrip("/")).resolve()
    if public_root not in target.parents:
        logger.warning(f"Refusing to delete file outside public dir: {url}")
        return False
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error(f"Error deleting {url}: {e}")
        return False
    return True


def clear_fliers(public_dir: Path) -> int:
    """Delete every uploaded flier. Returns the number of files removed."""
    fliers_dir = Path(public_dir) / FLIERS_SUBDIR
    if not fliers_dir.exists():
        return 0
    deleted = 0
    for path in fliers_dir.iterdir():
        if path.is_file():
            path.unlink()
            deleted += 1
    return deleted


def save_logo(public_dir: Path, content: bytes, content_type: Optional[str]) -> Path:
    """
    Replace the site logo.

    The logo in place before the first upload is kept as the default so it
    can be restored with reset_logo().
    """
    if content_type not in ALLOWED_LOGO_TYPES:
        raise UploadError("Invalid file type. Only PNG, JPG, and SVG are allowed")
    if len(content) > MAX_LOGO_BYTES:
        raise UploadError("File too large. Maximum size is 2MB")
    if not content:
        raise UploadError("No file provided")

    public_dir = Path(public_dir)
    public_dir.mkdir(parents=True, exist_ok=True)
    logo_path = public_dir / LOGO_FILENAME
    default_path = public_dir / DEFAULT_LOGO_FILENAME

    if logo_path.exists() and not default_path.exists():
        shutil.copyfile(logo_path, default_path)

    logo_path.write_bytes(content)
    logger.info(f"Logo updated ({len(content)} bytes, {content_type})")
    return logo_path


def reset_logo(public_dir: Path) -> Path:
    """Restore the default logo."""
    public_dir = Path(public_dir)
    default_path = public_dir / DEFAULT_LOGO_FILENAME
    if not default_path.exists():
        raise NotFoundError("No default logo found")
    logo_path = public_dir / LOGO_FILENAME
    shutil.copyfile(default_path, logo_path)
    return logo_path
