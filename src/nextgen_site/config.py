# -*- coding: utf-8 -*-
"""
Centralized configuration for the NextGen site.

All runtime settings are read from environment variables once, into a
SiteConfig dataclass that is passed explicitly to services and the API app.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "your-secret-key-change-this-in-production"
DEFAULT_BASE_URL = "http://localhost:3000"


def _decode_base64_hash(value: Optional[str]) -> Optional[str]:
    """Decode a base64-wrapped bcrypt hash (used where `$` is mangled by the shell)."""
    if not value:
        return None
    try:
        return base64.b64decode(value).decode("utf-8").strip() or None
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.error(f"ADMIN_PASSWORD_HASH_BASE64 is not valid base64: {e}")
        return None


@dataclass
class SiteConfig:
    """
    Runtime configuration for the site.

    Attributes:
        data_dir: Directory holding the JSON collections.
        public_dir: Directory holding uploaded logos and conference fliers.
        base_url: Public origin used when building conference QR codes.
        jwt_secret: HMAC secret for signing session tokens.
        admin_username: Username of the environment-configured admin.
        admin_password_hash: bcrypt hash for the environment admin. When None
            the environment admin cannot log in.
        session_days: Lifetime of a session token and cookie.
        cookie_secure: Whether the session cookie is marked Secure.
        org_name: Organization name used in schema.org markup and page titles.
        org_url: Organization URL used in schema.org markup.
    """

    data_dir: Path = Path("data")
    public_dir: Path = Path("public")
    base_url: str = DEFAULT_BASE_URL
    jwt_secret: str = DEFAULT_JWT_SECRET
    admin_username: str = "admin"
    admin_password_hash: Optional[str] = None
    session_days: int = 7
    cookie_secure: bool = False
    org_name: str = "NextGen"
    org_url: str = "https://nextgen.ng"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self.public_dir = Path(self.public_dir)
        self.admin_username = self.admin_username.strip()
        self.base_url = self.base_url.rstrip("/")

    @property
    def session_max_age(self) -> int:
        """Session lifetime in seconds."""
        return self.session_days * 24 * 60 * 60

    @property
    def fliers_dir(self) -> Path:
        return self.public_dir / "conference-fliers"

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "SiteConfig":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            A populated SiteConfig.
        """
        env = os.environ if environ is None else environ

        password_hash = env.get("ADMIN_PASSWORD_HASH") or _decode_base64_hash(
            env.get("ADMIN_PASSWORD_HASH_BASE64")
        )

        config = cls(
            data_dir=Path(env.get("NEXTGEN_DATA_DIR", "data")),
            public_dir=Path(env.get("NEXTGEN_PUBLIC_DIR", "public")),
            base_url=env.get("NEXT_PUBLIC_BASE_URL") or env.get("NEXTGEN_BASE_URL") or DEFAULT_BASE_URL,
            jwt_secret=env.get("JWT_SECRET") or DEFAULT_JWT_SECRET,
            admin_username=env.get("ADMIN_USERNAME") or "admin",
            admin_password_hash=password_hash,
            session_days=int(env.get("NEXTGEN_SESSION_DAYS", "7")),
            cookie_secure=env.get("NEXTGEN_ENV", "").lower() == "production",
            org_name=env.get("NEXTGEN_ORG_NAME", "NextGen"),
            org_url=env.get("NEXTGEN_ORG_URL", "https://nextgen.ng"),
        )

        if config.uses_default_secret:
            logger.warning("JWT_SECRET is not set; using the insecure development default")

        return config
