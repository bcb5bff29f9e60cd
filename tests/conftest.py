"""
Pytest fixtures and configuration for NextGen site tests.
"""

import pytest
from pathlib import Path

from fastapi.testclient import TestClient

from nextgen_site.auth import hash_password
from nextgen_site.config import SiteConfig
from nextgen_site.storage import JSONStore

ADMIN_PASSWORD = "correct-password"


@pytest.fixture(scope="session")
def admin_password_hash() -> str:
    """bcrypt hash of ADMIN_PASSWORD, computed once per run."""
    return hash_password(ADMIN_PASSWORD)


@pytest.fixture
def config(tmp_path: Path, admin_password_hash: str) -> SiteConfig:
    """Site configuration rooted in a temporary directory."""
    return SiteConfig(
        data_dir=tmp_path / "data",
        public_dir=tmp_path / "public",
        base_url="https://example.ng",
        jwt_secret="test-secret",
        admin_username="admin",
        admin_password_hash=admin_password_hash,
    )


@pytest.fixture
def store(config: SiteConfig) -> JSONStore:
    """JSON store over the temporary data directory."""
    return JSONStore(config.data_dir)


@pytest.fixture
def app(config: SiteConfig):
    """FastAPI app built against the temporary configuration."""
    from index import create_app

    return create_app(config)


@pytest.fixture
def client(app) -> TestClient:
    """Anonymous test client."""
    return TestClient(app)


@pytest.fixture
def login():
    """Log a client in; returns the login response."""
    def _login(client: TestClient, username: str = "admin", password: str = ADMIN_PASSWORD):
        return client.post(
            "/api/admin/auth/login",
            json={"username": username, "password": password},
        )
    return _login


@pytest.fixture
def admin_client(client: TestClient, login) -> TestClient:
    """Test client holding a super_admin session cookie."""
    response = login(client)
    assert response.status_code == 200
    return client


@pytest.fixture
def conference_payload() -> dict:
    """A valid conference create body."""
    return {
        "id": "lagos-2026",
        "title": "Lagos Youth Summit",
        "date": "2026-03-15",
        "venue": "Eko Hotel",
        "description": "<p>A day of civic workshops for young Nigerians.</p>",
    }


@pytest.fixture
def sample_html_content() -> str:
    """Sample page body with markup and a script block."""
    return """
<h1>About NextGen</h1>
<script>trackPageView();</script>
<p>NextGen brings young Nigerians together to organize,
vote and hold leaders accountable.</p>
<style>p { color: green; }</style>
"""
