"""
FastAPI app for the NextGen site.

This module serves the public site, the admin back-office pages and the
JSON API used by the admin panel. Business logic lives in the
nextgen_site package; handlers here only parse requests and shape responses.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import nextgen_site
from nextgen_site.ai_settings import AISettingsStore
from nextgen_site.auth import (
    SESSION_COOKIE,
    change_password,
    create_token,
    require_role,
    session_expiring_soon,
    verify_admin_credentials,
    verify_token,
)
from nextgen_site.conferences import ConferenceService
from nextgen_site.config import SiteConfig
from nextgen_site.csv_export import export_filename, registrations_to_csv
from nextgen_site.errors import NotFoundError, SiteError, ValidationError
from nextgen_site.llm_client import (
    check_connection,
    close_shared_http_client,
    create_llm_client,
    diagnostics,
)
from nextgen_site.models import AIProvider, SessionPayload, UserRole
from nextgen_site.pages import PageService
from nextgen_site.referral_codes import ReferralCodeService
from nextgen_site.registrations import NOW, RegistrationService
from nextgen_site.seo_generator import SEOGenerator, build_schema_markup, score_seo, seo_suggestions
from nextgen_site.storage import JSONStore
from nextgen_site.uploads import FLIERS_SUBDIR, LOGO_FILENAME, reset_logo, save_logo
from nextgen_site.users import UserService

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(nextgen_site.__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

LOGIN_PATH = "/admin/login"
SEO_GENERATE_PATH = "/api/ai/seo/generate"

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' 'unsafe-inline' 'unsafe-eval'; "
        "style-src 'self' 'unsafe-inline'; img-src 'self' data: https:; font-src 'self' data:;"
    ),
}


@dataclass
class SiteState:
    """Configuration and services shared by every request."""
    config: SiteConfig
    store: JSONStore
    conferences: ConferenceService
    pages: PageService
    referral_codes: ReferralCodeService
    registrations: RegistrationService
    users: UserService
    ai_settings: AISettingsStore
    llm_factory: Callable = field(default=create_llm_client)

    @classmethod
    def build(cls, config: SiteConfig) -> "SiteState":
        store = JSONStore(config.data_dir)
        referral_codes = ReferralCodeService(store)
        return cls(
            config=config,
            store=store,
            conferences=ConferenceService(store, config),
            pages=PageService(store),
            referral_codes=referral_codes,
            registrations=RegistrationService(store, referral_codes),
            users=UserService(store),
            ai_settings=AISettingsStore(store),
        )

    def seo_generator(self) -> SEOGenerator:
        client = self.llm_factory(self.ai_settings.read())
        return SEOGenerator(client, self.config.org_name, self.config.org_url)


# ============================================================================
# Request Models
# ============================================================================


class CamelModel(BaseModel):
    """Request body with camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class ConferenceRequest(CamelModel):
    """Create/update body. Fliers arrive as base64 data URLs."""
    id: Optional[str] = None
    title: Optional[str] = None
    date: Optional[str] = None
    venue: Optional[str] = None
    description: Optional[str] = None
    flier_data: Optional[str] = None
    flier_name: Optional[str] = None
    advertise_on_homepage: Optional[bool] = None


class PageRequest(CamelModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    body: Optional[str] = None
    hero_image: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    status: Optional[str] = None


class ReferralCodeRequest(CamelModel):
    code: Optional[str] = None
    owner_name: Optional[str] = None
    owner_phone: Optional[str] = None


class AttendRequest(CamelModel):
    conference_id: Optional[str] = Field(None, alias="conference_id")
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    # Left untyped so the service can insist on a real boolean
    is_registered_voter: Any = None
    referral_code: Optional[str] = None


class AttendanceUpdateRequest(CamelModel):
    id: Optional[str] = None
    attended_at: Optional[str] = None


class RegistrationDeleteRequest(CamelModel):
    id: Optional[str] = None


class UserCreateRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserUpdateRequest(CamelModel):
    email: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
    new_password: Optional[str] = None


class AISettingsRequest(CamelModel):
    provider: Optional[str] = None
    api_keys: Optional[dict[str, Optional[str]]] = None
    models: Optional[dict[str, Optional[str]]] = None
    ollama_url: Optional[str] = None


class ConnectionTestRequest(CamelModel):
    provider: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    ollama_url: Optional[str] = None


class SEOGenerateRequest(CamelModel):
    content: Optional[str] = None
    type: Optional[str] = None
    data: Optional[dict] = None
    keywords: Any = None


class SEOScoreRequest(CamelModel):
    meta_title: str = ""
    meta_description: str = ""
    keywords: Any = None
    content: str = ""


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


# ============================================================================
# Dependencies
# ============================================================================


def get_site(request: Request) -> SiteState:
    return request.app.state.site


def current_session(request: Request) -> Optional[SessionPayload]:
    return verify_token(request.cookies.get(SESSION_COOKIE), get_site(request).config)


def requires(minimum: UserRole) -> Callable:
    """Dependency factory: the request's session, which must hold at least `minimum`."""
    def dependency(request: Request) -> SessionPayload:
        return require_role(current_session(request), minimum)
    return dependency


viewer = Depends(requires(UserRole.VIEWER))
moderator = Depends(requires(UserRole.MODERATOR))
admin = Depends(requires(UserRole.ADMIN))


def ok(status_code: int = 200, **payload) -> JSONResponse:
    return JSONResponse({**payload, "success": True}, status_code=status_code)


# ============================================================================
# Auth API
# ============================================================================

auth_router = APIRouter(prefix="/api/admin/auth")


@auth_router.post("/login")
async def login(body: LoginRequest, site: SiteState = Depends(get_site)):
    """Check credentials and set the session cookie."""
    if not body.username or not body.password:
        raise ValidationError("Username and password are required")

    identity = verify_admin_credentials(body.username, body.password, site.config, site.store)
    if identity is None:
        return JSONResponse(
            {"message": "Invalid username or password", "success": False},
            status_code=401,
        )

    token = create_token(identity.username, site.config, role=identity.role)
    response = ok(message="Login successful")
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        secure=site.config.cookie_secure,
        samesite="lax",
        max_age=site.config.session_max_age,
        path="/",
    )
    logger.info(f"Login: {identity.username} ({identity.role.value})")
    return response


@auth_router.post("/logout")
async def logout():
    response = ok(message="Logout successful")
    response.delete_cookie(SESSION_COOKIE, path="/")
    return response


@auth_router.post("/change-password")
async def change_password_endpoint(
    body: ChangePasswordRequest,
    session: SessionPayload = viewer,
    site: SiteState = Depends(get_site),
):
    result = change_password(session, body.current_password, body.new_password, site.config, site.store)
    return ok(**result)


# ============================================================================
# Admin API
# ============================================================================

admin_router = APIRouter(prefix="/api/admin")


@admin_router.get("/conferences", dependencies=[viewer])
async def list_conferences(site: SiteState = Depends(get_site)):
    return ok(conferences=[c.to_dict() for c in site.conferences.list()])


@admin_router.post("/conferences", dependencies=[moderator])
async def create_conference(body: ConferenceRequest, site: SiteState = Depends(get_site)):
    conference = site.conferences.create(
        id=body.id,
        title=body.title,
        date=body.date,
        venue=body.venue,
        description=body.description,
        flier_data=body.flier_data,
        flier_name=body.flier_name,
        advertise_on_homepage=body.advertise_on_homepage,
    )
    return ok(201, message="Conference created successfully", conference=conference.to_dict())


@admin_router.get("/conferences/{conference_id}", dependencies=[viewer])
async def get_conference(conference_id: str, site: SiteState = Depends(get_site)):
    return ok(conference=site.conferences.get(conference_id).to_dict())


@admin_router.put("/conferences/{conference_id}", dependencies=[moderator])
async def update_conference(conference_id: str, body: ConferenceRequest, site: SiteState = Depends(get_site)):
    conference = site.conferences.update(
        conference_id,
        new_id=body.id,
        title=body.title,
        date=body.date,
        venue=body.venue,
        description=body.description,
        flier_data=body.flier_data,
        flier_name=body.flier_name,
        advertise_on_homepage=body.advertise_on_homepage,
    )
    return ok(message="Conference updated successfully", conference=conference.to_dict())


@admin_router.delete("/conferences/{conference_id}", dependencies=[moderator])
async def delete_conference(conference_id: str, site: SiteState = Depends(get_site)):
    site.conferences.delete(conference_id)
    return ok(message="Conference deleted successfully")


@admin_router.get("/pages", dependencies=[viewer])
async def list_pages(site: SiteState = Depends(get_site)):
    return ok(pages=[p.to_dict() for p in site.pages.list()])


@admin_router.post("/pages", dependencies=[moderator])
async def create_page(body: PageRequest, site: SiteState = Depends(get_site)):
    page = site.pages.create(
        title=body.title,
        slug=body.slug,
        body=body.body,
        hero_image=body.hero_image,
        meta_description=body.meta_description,
        meta_keywords=body.meta_keywords,
        status=body.status,
    )
    return ok(201, message="Page created successfully", page=page.to_dict())


@admin_router.get("/pages/{page_id}", dependencies=[viewer])
async def get_page(page_id: str, site: SiteState = Depends(get_site)):
    return ok(page=site.pages.get(page_id).to_dict())


@admin_router.put("/pages/{page_id}", dependencies=[moderator])
async def update_page(page_id: str, body: PageRequest, site: SiteState = Depends(get_site)):
    page = site.pages.update(
        page_id,
        title=body.title,
        slug=body.slug,
        body=body.body,
        hero_image=body.hero_image,
        meta_description=body.meta_description,
        meta_keywords=body.meta_keywords,
        status=body.status,
    )
    return ok(message="Page updated successfully", page=page.to_dict())


@admin_router.delete("/pages/{page_id}", dependencies=[moderator])
async def delete_page(page_id: str, site: SiteState = Depends(get_site)):
    site.pages.delete(page_id)
    return ok(message="Page deleted successfully")


@admin_router.get("/referral-codes", dependencies=[viewer])
async def list_referral_codes(site: SiteState = Depends(get_site)):
    return ok(codes=[c.to_dict() for c in site.referral_codes.list()])


@admin_router.post("/referral-codes", dependencies=[moderator])
async def create_referral_code(body: ReferralCodeRequest, site: SiteState = Depends(get_site)):
    code = site.referral_codes.create(body.code, body.owner_name, body.owner_phone)
    return ok(201, message="Referral code created successfully", code=code.to_dict())


@admin_router.get("/referral-codes/{code}", dependencies=[viewer])
async def get_referral_code(code: str, site: SiteState = Depends(get_site)):
    return ok(code=site.referral_codes.get(code).to_dict())


@admin_router.put("/referral-codes/{code}", dependencies=[moderator])
async def update_referral_code(code: str, body: ReferralCodeRequest, site: SiteState = Depends(get_site)):
    updated = site.referral_codes.update(code, body.owner_name, body.owner_phone)
    return ok(message="Referral code updated successfully", code=updated.to_dict())


@admin_router.delete("/referral-codes/{code}", dependencies=[moderator])
async def delete_referral_code(code: str, site: SiteState = Depends(get_site)):
    site.referral_codes.delete(code)
    return ok(message="Referral code deleted successfully")


@admin_router.get("/registrations", dependencies=[viewer])
async def list_registrations(conference_id: Optional[str] = None, site: SiteState = Depends(get_site)):
    return ok(registrations=[r.to_dict() for r in site.registrations.list(conference_id)])


@admin_router.put("/registrations", dependencies=[moderator])
async def update_attendance(body: AttendanceUpdateRequest, site: SiteState = Depends(get_site)):
    """Check a registration in. An explicit null attendedAt clears the check-in."""
    attended_at = body.attended_at if "attended_at" in body.model_fields_set else NOW
    registration = site.registrations.mark_attended(body.id, attended_at)
    return ok(message="Attendance updated successfully", registration=registration.to_dict())


@admin_router.delete("/registrations", dependencies=[moderator])
async def delete_registration(body: RegistrationDeleteRequest, site: SiteState = Depends(get_site)):
    site.registrations.delete(body.id)
    return ok(message="Registration deleted successfully")


@admin_router.get("/export-csv", dependencies=[viewer])
async def export_csv(conference_id: Optional[str] = None, site: SiteState = Depends(get_site)):
    csv_text = registrations_to_csv(site.registrations.list(conference_id))
    filename = export_filename(conference_id)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@admin_router.get("/users", dependencies=[admin])
async def list_users(site: SiteState = Depends(get_site)):
    return ok(users=site.users.list())


@admin_router.post("/users", dependencies=[admin])
async def create_user(body: UserCreateRequest, site: SiteState = Depends(get_site)):
    user = site.users.create(body.username, body.email, body.password, body.role)
    return ok(201, message="User created successfully", user=user)


@admin_router.get("/users/{user_id}", dependencies=[admin])
async def get_user(user_id: str, site: SiteState = Depends(get_site)):
    return ok(user=site.users.get(user_id))


@admin_router.put("/users/{user_id}", dependencies=[admin])
async def update_user(user_id: str, body: UserUpdateRequest, site: SiteState = Depends(get_site)):
    user = site.users.update(
        user_id,
        email=body.email,
        role=body.role,
        is_active=body.is_active,
        new_password=body.new_password,
    )
    return ok(message="User updated successfully", user=user)


@admin_router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    session: SessionPayload = admin,
    site: SiteState = Depends(get_site),
):
    site.users.delete(user_id, acting_username=session.username)
    return ok(message="User deleted successfully")


@admin_router.post("/settings/logo", dependencies=[moderator])
async def upload_logo(logo: Optional[UploadFile] = File(None), site: SiteState = Depends(get_site)):
    if logo is None:
        raise ValidationError("No file provided")
    content = await logo.read()
    save_logo(site.config.public_dir, content, logo.content_type)
    return ok(message="Logo uploaded successfully")


@admin_router.delete("/settings/logo", dependencies=[moderator])
async def reset_logo_endpoint(site: SiteState = Depends(get_site)):
    reset_logo(site.config.public_dir)
    return ok(message="Logo reset to default successfully")


@admin_router.get("/ai-settings", dependencies=[admin])
async def get_ai_settings(site: SiteState = Depends(get_site)):
    return ok(settings=site.ai_settings.masked())


@admin_router.post("/ai-settings", dependencies=[admin])
async def save_ai_settings(body: AISettingsRequest, site: SiteState = Depends(get_site)):
    site.ai_settings.save(body.provider, body.api_keys, body.models, body.ollama_url)
    return ok(message="AI settings saved successfully")


@admin_router.post("/ai-settings/test", dependencies=[admin])
def ai_connection_test(body: ConnectionTestRequest, site: SiteState = Depends(get_site)):
    """Check a provider with the credentials in the form, before they are saved."""
    api_key = site.ai_settings.resolve_api_key(body.provider, body.api_key)
    result = check_connection(body.provider, api_key, body.model, body.ollama_url)
    return JSONResponse(result, status_code=200 if result["success"] else 500)


# ============================================================================
# AI API
# ============================================================================

ai_router = APIRouter(prefix="/api/ai")


@ai_router.post("/seo/generate", dependencies=[moderator])
def generate_seo(body: SEOGenerateRequest, site: SiteState = Depends(get_site)):
    """
    Generate SEO metadata for a conference or page.

    With `data` the complete package (meta tags, Open Graph, schema.org) is
    returned, otherwise only the meta tags.
    """
    if not body.content or not body.type:
        raise ValidationError("Missing required fields: content and type")
    seo = site.seo_generator().generate(body.content, body.type, body.data, body.keywords)
    return ok(message="SEO content generated successfully", seo=seo)


@ai_router.post("/seo/score", dependencies=[viewer])
async def seo_score(body: SEOScoreRequest):
    return ok(
        score=score_seo(body.meta_title, body.meta_description, body.keywords, body.content),
        suggestions=seo_suggestions(body.meta_title, body.meta_description, body.keywords),
    )


@ai_router.get("/seo/test", dependencies=[admin])
def seo_test(site: SiteState = Depends(get_site)):
    """Run the generator on a fixed sample conference."""
    try:
        results = site.seo_generator().run_sample()
    except SiteError as e:
        return JSONResponse(
            {
                "success": False,
                "error": e.message,
                "troubleshooting": [
                    "Check the provider and API key in AI settings",
                    "Verify the API key is valid",
                    "Ensure the server has internet access",
                    "Check the provider's quota and rate limits",
                ],
            },
            status_code=500,
        )
    return ok(message="AI SEO test completed successfully!", results=results)


@ai_router.get("/diagnostics", dependencies=[admin])
async def ai_diagnostics(site: SiteState = Depends(get_site)):
    settings = site.ai_settings.read()
    report = diagnostics(settings)
    if not settings.provider.needs_api_key:
        next_steps = [f"Make sure Ollama is running at {settings.ollama_url}"]
    elif report["apiKeySet"]:
        next_steps = [
            "API key appears to be set",
            "Make sure the key has no extra spaces",
            "Use Test Connection in AI settings to verify it",
        ]
    else:
        next_steps = [
            f"Add an API key for {settings.provider.display_name} in AI settings",
            "Or set the provider's API key environment variable and restart the server",
        ]
    return {
        "message": f"{settings.provider.display_name} API Configuration Check",
        "diagnostics": report,
        "troubleshooting": {"nextSteps": next_steps},
    }


# ============================================================================
# Public API
# ============================================================================

public_router = APIRouter()


@public_router.post("/api/conference/attend")
async def attend(body: AttendRequest, site: SiteState = Depends(get_site)):
    site.registrations.register(
        conference_id=body.conference_id,
        name=body.name,
        email=body.email,
        phone=body.phone,
        is_registered_voter=body.is_registered_voter,
        referral_code=body.referral_code,
    )
    return ok(message="Attendance recorded")


@public_router.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=nextgen_site.__version__)


# ============================================================================
# Pages
# ============================================================================

pages_router = APIRouter()


@pages_router.get("/")
async def home(request: Request, site: SiteState = Depends(get_site)):
    return templates.TemplateResponse(
        request=request,
        name="home.html",
        context={"org_name": site.config.org_name, "conferences": site.conferences.advertised()},
    )


@pages_router.get("/conferences")
async def conferences_page(request: Request, site: SiteState = Depends(get_site)):
    return templates.TemplateResponse(
        request=request,
        name="conferences.html",
        context={"org_name": site.config.org_name, "groups": site.conferences.categorize()},
    )


@pages_router.get("/conference/{conference_id}")
async def conference_page(conference_id: str, request: Request, site: SiteState = Depends(get_site)):
    conference = site.conferences.get(conference_id)
    schema = build_schema_markup(conference.to_dict(), "Event", site.config.org_name, site.config.org_url)
    return templates.TemplateResponse(
        request=request,
        name="conference.html",
        context={"org_name": site.config.org_name, "conference": conference, "schema": schema},
    )


@pages_router.get("/pages/{slug}")
async def content_page(slug: str, request: Request, site: SiteState = Depends(get_site)):
    page = site.pages.get_by_slug(slug)
    if page is None:
        raise NotFoundError("Page not found")
    return templates.TemplateResponse(
        request=request,
        name="page.html",
        context={"org_name": site.config.org_name, "page": page},
    )


@pages_router.get("/join")
async def join_page(request: Request, site: SiteState = Depends(get_site)):
    return templates.TemplateResponse(
        request=request,
        name="join.html",
        context={"org_name": site.config.org_name},
    )


@pages_router.get(LOGIN_PATH)
async def admin_login_page(request: Request, site: SiteState = Depends(get_site)):
    return templates.TemplateResponse(
        request=request,
        name="admin/login.html",
        context={"org_name": site.config.org_name},
    )


def render_admin(request: Request, site: SiteState, name: str, status_code: int = 200, **context):
    """Render an admin template with the org name and the signed-in session."""
    return templates.TemplateResponse(
        request=request,
        name=f"admin/{name}",
        context={"org_name": site.config.org_name, "session": current_session(request), **context},
        status_code=status_code,
    )


@pages_router.get("/admin")
async def admin_dashboard(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(
        request,
        site,
        "dashboard.html",
        counts={
            "pages": len(site.pages.list()),
            "conferences": len(site.conferences.list()),
            "registrations": site.registrations.count(),
        },
        referral_stats=site.registrations.stats_by_referral(),
    )


# Fixed paths ("new") are registered before the {id} routes that would capture them.


@pages_router.get("/admin/conferences", dependencies=[viewer])
async def admin_conferences(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "conferences.html", conferences=site.conferences.list())


@pages_router.get("/admin/conferences/new", dependencies=[moderator])
async def admin_new_conference(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "conference_form.html", conference=None)


@pages_router.get("/admin/conferences/{conference_id}", dependencies=[viewer])
async def admin_edit_conference(conference_id: str, request: Request, site: SiteState = Depends(get_site)):
    conference = site.conferences.get(conference_id)
    return render_admin(request, site, "conference_form.html", conference=conference)


@pages_router.get("/admin/pages", dependencies=[viewer])
async def admin_pages(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "pages.html", pages=site.pages.list())


@pages_router.get("/admin/pages/new", dependencies=[moderator])
async def admin_new_page(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "page_form.html", page=None)


@pages_router.get("/admin/pages/{page_id}", dependencies=[viewer])
async def admin_edit_page(page_id: str, request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "page_form.html", page=site.pages.get(page_id))


@pages_router.get("/admin/referral-codes", dependencies=[viewer])
async def admin_referral_codes(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(
        request,
        site,
        "referral_codes.html",
        codes=site.referral_codes.list(),
        referral_stats=site.registrations.stats_by_referral(),
    )


@pages_router.get("/admin/referral-codes/new", dependencies=[moderator])
async def admin_new_referral_code(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "referral_code_form.html", code=None)


@pages_router.get("/admin/referral-codes/{code}", dependencies=[viewer])
async def admin_edit_referral_code(code: str, request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "referral_code_form.html", code=site.referral_codes.get(code))


@pages_router.get("/admin/registrations", dependencies=[viewer])
async def admin_registrations(
    request: Request,
    conference_id: Optional[str] = None,
    site: SiteState = Depends(get_site),
):
    return render_admin(
        request,
        site,
        "registrations.html",
        registrations=site.registrations.list(conference_id or None),
        conferences=site.conferences.list(),
        selected_conference=conference_id or "",
    )


@pages_router.get("/admin/users", dependencies=[admin])
async def admin_users(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "users.html", users=site.users.list())


@pages_router.get("/admin/users/new", dependencies=[admin])
async def admin_new_user(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "user_form.html", user=None, roles=UserRole.values())


@pages_router.get("/admin/users/{user_id}", dependencies=[admin])
async def admin_edit_user(user_id: str, request: Request, site: SiteState = Depends(get_site)):
    return render_admin(
        request, site, "user_form.html", user=site.users.get(user_id), roles=UserRole.values(),
    )


@pages_router.get("/admin/ai-settings", dependencies=[admin])
async def admin_ai_settings(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(
        request,
        site,
        "ai_settings.html",
        settings=site.ai_settings.masked(),
        providers=list(AIProvider),
    )


@pages_router.get("/admin/settings", dependencies=[viewer])
async def admin_settings(request: Request, site: SiteState = Depends(get_site)):
    return render_admin(request, site, "settings.html")


@pages_router.get(f"/{LOGO_FILENAME}")
async def logo(site: SiteState = Depends(get_site)):
    path = site.config.public_dir / LOGO_FILENAME
    if not path.exists():
        raise NotFoundError("Logo not found")
    return FileResponse(path)


# ============================================================================
# Middleware and error handlers
# ============================================================================


def _needs_api_session(path: str) -> bool:
    if path.startswith("/api/admin/auth"):
        return False
    return path.startswith("/api/admin/") or path == "/api/admin" or path == SEO_GENERATE_PATH


def _is_admin_page(path: str) -> bool:
    return (path == "/admin" or path.startswith("/admin/")) and path != LOGIN_PATH


async def session_gate(request: Request, call_next):
    """Turn away requests to admin pages and APIs that lack a valid session."""
    path = request.url.path
    if not (_is_admin_page(path) or _needs_api_session(path)):
        return await call_next(request)

    config = request.app.state.site.config
    token = request.cookies.get(SESSION_COOKIE)
    session = verify_token(token, config)

    if session is None:
        if _needs_api_session(path):
            return JSONResponse({"message": "Unauthorized", "success": False}, status_code=401)
        response = RedirectResponse(LOGIN_PATH, status_code=307)
        if token:
            response.delete_cookie(SESSION_COOKIE, path="/")
        return response

    if session_expiring_soon(session):
        logger.info(f"Session expiring soon for user: {session.username}")
    return await call_next(request)


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


async def site_error_handler(request: Request, exc: SiteError):
    if exc.status_code == 404 and not request.url.path.startswith("/api/"):
        return templates.TemplateResponse(
            request=request,
            name="not_found.html",
            context={"org_name": request.app.state.site.config.org_name, "message": exc.message},
            status_code=404,
        )
    if exc.status_code == 403 and _is_admin_page(request.url.path):
        return render_admin(
            request, request.app.state.site, "forbidden.html", status_code=403, message=exc.message,
        )
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse({"message": exc.message, "success": False}, status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected request body for {request.url.path}: {exc.errors()}")
    return JSONResponse({"message": "Invalid request body", "success": False}, status_code=400)


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse({"message": "Internal server error", "success": False}, status_code=500)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_shared_http_client()


def create_app(config: Optional[SiteConfig] = None) -> FastAPI:
    """
    Build the application.

    Args:
        config: Site configuration. Defaults to SiteConfig.from_env().

    Returns:
        Configured FastAPI app with routes, middleware and static mounts.
    """
    config = config or SiteConfig.from_env()

    app = FastAPI(
        title="NextGen Site",
        description="Civic engagement site and admin back-office",
        version=nextgen_site.__version__,
        lifespan=lifespan,
    )
    app.state.site = SiteState.build(config)

    app.middleware("http")(session_gate)
    app.middleware("http")(security_headers)

    app.add_exception_handler(SiteError, site_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(ai_router)
    app.include_router(public_router)
    app.include_router(pages_router)

    app.mount(
        f"/{FLIERS_SUBDIR}",
        StaticFiles(directory=str(config.fliers_dir), check_dir=False),
        name="fliers",
    )

    return app


app = create_app()
