"""
Data models for the NextGen site.

Each record type maps one-to-one to an entry in a JSON collection under the
data directory. Keys are camelCase on disk and on the wire; optional fields
that are unset are omitted from the serialized form.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def timestamp_id(now: Optional[datetime] = None) -> str:
    """Return a millisecond epoch string, used as a record id."""
    now = now or datetime.now(timezone.utc)
    return str(int(now.timestamp() * 1000))


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


class PageStatus(Enum):
    """Publication state of a content page."""
    DRAFT = "draft"
    PUBLISHED = "published"


class UserRole(Enum):
    """Back-office roles, from most to least privileged."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MODERATOR = "moderator"
    VIEWER = "viewer"

    @property
    def rank(self) -> int:
        """Numeric privilege level; higher is more privileged."""
        return {
            UserRole.SUPER_ADMIN: 4,
            UserRole.ADMIN: 3,
            UserRole.MODERATOR: 2,
            UserRole.VIEWER: 1,
        }[self]

    def at_least(self, minimum: "UserRole") -> bool:
        return self.rank >= minimum.rank

    @classmethod
    def values(cls) -> list[str]:
        return [role.value for role in cls]


class AIProvider(Enum):
    """Supported generative text providers."""
    GEMINI = "gemini"
    OPENAI = "openai"
    HUGGINGFACE = "huggingface"
    OLLAMA = "ollama"
    ANTHROPIC = "anthropic"

    @property
    def display_name(self) -> str:
        return {
            AIProvider.GEMINI: "Google Gemini",
            AIProvider.OPENAI: "OpenAI",
            AIProvider.HUGGINGFACE: "Hugging Face",
            AIProvider.OLLAMA: "Ollama",
            AIProvider.ANTHROPIC: "Anthropic",
        }[self]

    @property
    def needs_api_key(self) -> bool:
        return self is not AIProvider.OLLAMA

    @classmethod
    def values(cls) -> list[str]:
        return [provider.value for provider in cls]


@dataclass
class Conference:
    """A conference listing with its QR code and optional flier."""
    id: str
    title: str
    date: str
    venue: str
    description: str
    qr_code: str = ""
    flier_url: Optional[str] = None
    advertise_on_homepage: bool = False
    created_at: str = ""
    updated_at: str = ""

    @property
    def date_only(self) -> Optional[datetime]:
        """The conference date with the time part dropped, or None if unparseable."""
        try:
            parsed = datetime.fromisoformat(self.date.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            return None
        return datetime(parsed.year, parsed.month, parsed.day)

    @classmethod
    def from_dict(cls, data: dict) -> "Conference":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            date=data.get("date", ""),
            venue=data.get("venue", ""),
            description=data.get("description", ""),
            qr_code=data.get("qrCode", ""),
            flier_url=data.get("flierUrl"),
            advertise_on_homepage=bool(data.get("advertiseOnHomepage", False)),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "venue": self.venue,
            "description": self.description,
            "qrCode": self.qr_code,
            "flierUrl": self.flier_url,
            "advertiseOnHomepage": self.advertise_on_homepage,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })


@dataclass
class Page:
    """A static content page rendered at /pages/{slug}."""
    id: str
    title: str
    slug: str
    body: str
    hero_image: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    status: PageStatus = PageStatus.DRAFT
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_published(self) -> bool:
        return self.status == PageStatus.PUBLISHED

    @classmethod
    def from_dict(cls, data: dict) -> "Page":
        try:
            status = PageStatus(data.get("status") or PageStatus.DRAFT.value)
        except ValueError:
            status = PageStatus.DRAFT
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            slug=data.get("slug", ""),
            body=data.get("body", ""),
            hero_image=data.get("heroImage"),
            meta_description=data.get("metaDescription"),
            meta_keywords=data.get("metaKeywords"),
            status=status,
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "body": self.body,
            "heroImage": self.hero_image,
            "metaDescription": self.meta_description,
            "metaKeywords": self.meta_keywords,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })


@dataclass
class ReferralCode:
    """A five-character referral code owned by a field volunteer."""
    code: str
    owner_name: str
    owner_phone: str
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ReferralCode":
        return cls(
            code=data["code"],
            owner_name=data.get("ownerName", ""),
            owner_phone=data.get("ownerPhone", ""),
            created_at=data.get("createdAt", ""),
        )

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "ownerName": self.owner_name,
            "ownerPhone": self.owner_phone,
            "createdAt": self.created_at,
        }


@dataclass
class Registration:
    """An attendee registration for a conference (stored in attendance.json)."""
    id: str
    conference_id: str
    name: str
    email: str
    phone: Optional[str] = None
    is_registered_voter: Optional[bool] = None
    referral_code: Optional[str] = None
    timestamp: str = ""
    attended_at: Optional[str] = None

    @property
    def has_attended(self) -> bool:
        return self.attended_at is not None

    @classmethod
    def from_dict(cls, data: dict) -> "Registration":
        return cls(
            id=str(data["id"]),
            conference_id=data.get("conference_id", ""),
            name=data.get("name", ""),
            email=data.get("email", ""),
            phone=data.get("phone"),
            is_registered_voter=data.get("isRegisteredVoter"),
            referral_code=data.get("referralCode"),
            timestamp=data.get("timestamp", ""),
            attended_at=data.get("attendedAt"),
        )

    def to_dict(self) -> dict:
        data = _drop_none({
            "id": self.id,
            "conference_id": self.conference_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "isRegisteredVoter": self.is_registered_voter,
            "referralCode": self.referral_code,
            "timestamp": self.timestamp,
        })
        # attendedAt is always present; null means not yet attended
        data["attendedAt"] = self.attended_at
        return data


@dataclass
class User:
    """A back-office user account."""
    id: str
    username: str
    email: str
    password_hash: str
    role: UserRole = UserRole.VIEWER
    created_at: str = ""
    updated_at: str = ""
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        try:
            role = UserRole(data.get("role", UserRole.VIEWER.value))
        except ValueError:
            role = UserRole.VIEWER
        return cls(
            id=data["id"],
            username=data.get("username", ""),
            email=data.get("email", ""),
            password_hash=data.get("passwordHash", ""),
            role=role,
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
            is_active=bool(data.get("isActive", True)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "passwordHash": self.password_hash,
            "role": self.role.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "isActive": self.is_active,
        }

    def to_public_dict(self) -> dict:
        """Serialize without the password hash."""
        data = self.to_dict()
        data.pop("passwordHash")
        return data


API_KEY_PROVIDERS = ("gemini", "openai", "huggingface", "anthropic")
MODEL_PROVIDERS = ("gemini", "openai", "huggingface", "ollama", "anthropic")
MASK_PREFIX = "••••••••"


@dataclass
class AISettings:
    """Provider selection, credentials and model names for SEO generation."""
    provider: AIProvider = AIProvider.GEMINI
    api_keys: dict[str, str] = field(default_factory=dict)
    models: dict[str, str] = field(default_factory=dict)
    ollama_url: str = "http://localhost:11434"
    updated_at: str = ""

    def api_key_for(self, provider: Optional[AIProvider] = None) -> str:
        provider = provider or self.provider
        return self.api_keys.get(provider.value, "")

    def model_for(self, provider: Optional[AIProvider] = None) -> str:
        provider = provider or self.provider
        return self.models.get(provider.value, "")

    @classmethod
    def from_dict(cls, data: dict) -> "AISettings":
        try:
            provider = AIProvider(data.get("provider", AIProvider.GEMINI.value))
        except ValueError:
            provider = AIProvider.GEMINI
        return cls(
            provider=provider,
            api_keys={k: v or "" for k, v in (data.get("apiKeys") or {}).items()},
            models={k: v or "" for k, v in (data.get("models") or {}).items()},
            ollama_url=data.get("ollamaUrl") or "http://localhost:11434",
            updated_at=data.get("updatedAt", ""),
        )

    def to_dict(self) -> dict:
        return {
            "provider": self.provider.value,
            "apiKeys": {name: self.api_keys.get(name, "") for name in API_KEY_PROVIDERS},
            "models": {name: self.models.get(name, "") for name in MODEL_PROVIDERS},
            "ollamaUrl": self.ollama_url,
            "updatedAt": self.updated_at,
        }

    def masked(self) -> dict:
        """Serialize with every API key reduced to its last four characters."""
        data = self.to_dict()
        data["apiKeys"] = {
            name: (MASK_PREFIX + key[-4:]) if key else ""
            for name, key in data["apiKeys"].items()
        }
        return data


@dataclass
class SEOMetaTags:
    """Meta title, description and keywords for a page or conference."""
    meta_title: str
    meta_description: str
    keywords: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "SEOMetaTags":
        keywords = data.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [k.strip() for k in keywords.split(",") if k.strip()]
        return cls(
            meta_title=str(data.get("metaTitle", "")).strip(),
            meta_description=str(data.get("metaDescription", "")).strip(),
            keywords=[str(k).strip() for k in keywords if str(k).strip()],
        )

    def to_dict(self) -> dict:
        return {
            "metaTitle": self.meta_title,
            "metaDescription": self.meta_description,
            "keywords": list(self.keywords),
        }


@dataclass
class OpenGraphTags:
    """Open Graph tags for social sharing."""
    title: str
    description: str
    type: str = "website"
    image: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "OpenGraphTags":
        return cls(
            title=str(data.get("title", "")).strip(),
            description=str(data.get("description", "")).strip(),
            type=str(data.get("type") or "website").strip(),
            image=data.get("image") or None,
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "image": self.image,
        })


@dataclass
class SessionPayload:
    """Decoded claims of a session token."""
    username: str
    role: UserRole
    expires_at: int  # milliseconds since epoch

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "role": self.role.value,
            "expiresAt": self.expires_at,
        }
