"""
NextGen Site

Marketing site and admin back-office for a youth civic-engagement
organization:
- Public pages, conference listings and conference registration
- Admin management of pages, conferences, referral codes, registrations and users
- AI-generated SEO metadata through a configurable LLM provider
"""

__version__ = "1.0.0"
__author__ = "NextGen Team"

from .config import SiteConfig

from .errors import (
    SiteError,
    ValidationError,
    ConflictError,
    AuthenticationError,
    PermissionDeniedError,
    NotFoundError,
    UploadError,
    RateLimitError,
    LLMClientError,
)

from .models import (
    Conference,
    Page,
    PageStatus,
    ReferralCode,
    Registration,
    User,
    UserRole,
    AIProvider,
    AISettings,
    SEOMetaTags,
    OpenGraphTags,
    SessionPayload,
)

from .storage import JSONStore

# Services
from .conferences import ConferenceService, ConferenceGroups
from .pages import PageService
from .referral_codes import ReferralCodeService
from .registrations import RegistrationService
from .users import UserService
from .ai_settings import AISettingsStore

# AI integration
from .llm_client import LLMClient, ResponseCache, RateLimiter, create_llm_client
from .seo_generator import SEOGenerator, score_seo, seo_suggestions

__all__ = [
    # Configuration
    "SiteConfig",
    # Errors
    "SiteError",
    "ValidationError",
    "ConflictError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "UploadError",
    "RateLimitError",
    "LLMClientError",
    # Models
    "Conference",
    "Page",
    "PageStatus",
    "ReferralCode",
    "Registration",
    "User",
    "UserRole",
    "AIProvider",
    "AISettings",
    "SEOMetaTags",
    "OpenGraphTags",
    "SessionPayload",
    # Storage and services
    "JSONStore",
    "ConferenceService",
    "ConferenceGroups",
    "PageService",
    "ReferralCodeService",
    "RegistrationService",
    "UserService",
    "AISettingsStore",
    # AI integration
    "LLMClient",
    "ResponseCache",
    "RateLimiter",
    "create_llm_client",
    "SEOGenerator",
    "score_seo",
    "seo_suggestions",
]
