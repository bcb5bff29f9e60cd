"""
Command-line interface for NextGen site maintenance.

Provides operator commands for generating the admin password hash,
resetting demo data, backfilling QR codes, checking the environment,
smoke-testing SEO generation and running the development server.
"""

import base64
import os
import secrets
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .ai_settings import AISettingsStore
from .auth import MIN_PASSWORD_LENGTH, hash_password
from .conferences import ConferenceService
from .config import SiteConfig
from .errors import SiteError
from .llm_client import create_llm_client
from .referral_codes import ReferralCodeService
from .registrations import RegistrationService
from .seo_generator import SEOGenerator
from .storage import CONFERENCES, JSONStore
from .uploads import clear_fliers

console = Console()

API_DIR = Path(__file__).resolve().parents[2] / "api"

ENV_VARS = ("ADMIN_USERNAME", "ADMIN_PASSWORD_HASH", "ADMIN_PASSWORD_HASH_BASE64", "JWT_SECRET")


def generate_secret() -> str:
    """Random 32-byte secret, base64 encoded, for JWT_SECRET."""
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


def _load_config(ctx: click.Context) -> SiteConfig:
    config = SiteConfig.from_env()
    if ctx.obj.get("data_dir"):
        config.data_dir = ctx.obj["data_dir"]
    if ctx.obj.get("public_dir"):
        config.public_dir = ctx.obj["public_dir"]
    return config


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the JSON collections (default: NEXTGEN_DATA_DIR or ./data).",
)
@click.option(
    "--public-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding uploads (default: NEXTGEN_PUBLIC_DIR or ./public).",
)
@click.pass_context
def main(ctx: click.Context, data_dir: Optional[Path], public_dir: Optional[Path]) -> None:
    """
    NextGen site tools.

    Examples:

        nextgen hash-password --base64

        nextgen reset-data --yes

        nextgen serve --port 3000
    """
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["public_dir"] = public_dir


@main.command("hash-password")
@click.option(
    "--password",
    prompt="Enter admin password",
    hide_input=True,
    help="Password to hash. Prompted for with hidden input when omitted.",
)
@click.option(
    "--base64",
    "as_base64",
    is_flag=True,
    default=False,
    help="Print ADMIN_PASSWORD_HASH_BASE64 instead of the raw hash.",
)
@click.option(
    "--escape-dollars",
    is_flag=True,
    default=False,
    help="Double every $ in the hash, for tools that expand $ in .env files.",
)
def hash_password_command(password: str, as_base64: bool, escape_dollars: bool) -> None:
    """Generate the admin password hash and a JWT secret."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        console.print(f"[red]Error:[/red] Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        sys.exit(1)

    password_hash = hash_password(password)

    console.print("\n[bold green]Password hash generated successfully![/bold green]\n")
    console.print("Add this to your .env file:\n")
    console.print("ADMIN_USERNAME=admin", markup=False, highlight=False, soft_wrap=True)
    if as_base64:
        encoded = base64.b64encode(password_hash.encode("utf-8")).decode("ascii")
        console.print(f"ADMIN_PASSWORD_HASH_BASE64={encoded}", markup=False, highlight=False, soft_wrap=True)
    else:
        if escape_dollars:
            password_hash = password_hash.replace("$", "$$")
        console.print(f"ADMIN_PASSWORD_HASH={password_hash}", markup=False, highlight=False, soft_wrap=True)
    console.print(f"JWT_SECRET={generate_secret()}\n", markup=False, highlight=False, soft_wrap=True)


@main.command("reset-data")
@click.option("--yes", is_flag=True, default=False, help="Skip the confirmation prompt.")
@click.pass_context
def reset_data(ctx: click.Context, yes: bool) -> None:
    """Clear conferences, registrations and fliers; restore the 50 seed referral codes."""
    config = _load_config(ctx)
    if not yes:
        click.confirm(f"Reset all data under {config.data_dir}?", abort=True)

    store = JSONStore(config.data_dir)

    console.print(Panel.fit("[bold blue]NextGen Data Reset[/bold blue]", border_style="blue"))

    try:
        store.reset_collection(CONFERENCES, [])
        console.print("[green]Reset:[/green] conferences.json")
        RegistrationService(store).clear()
        console.print("[green]Reset:[/green] attendance.json")
        code_count = ReferralCodeService(store).reset()
        console.print("[green]Reset:[/green] referral-codes.json")
        deleted = clear_fliers(config.public_dir)
        console.print(f"[green]Deleted[/green] {deleted} flier file(s)")
    except OSError as e:
        console.print(f"[red]Reset failed:[/red] {e}")
        sys.exit(1)

    table = Table(title="Reset summary", show_header=True)
    table.add_column("Collection", style="cyan")
    table.add_column("Now", style="green")
    table.add_row("Conferences", "0")
    table.add_row("Registrations", "0")
    table.add_row("Referral codes", f"{code_count} (reset to initial)")
    table.add_row("Flier images", "Cleared")
    console.print(table)


@main.command("generate-qr-codes")
@click.pass_context
def generate_qr_codes(ctx: click.Context) -> None:
    """Generate QR codes for conferences that have none."""
    config = _load_config(ctx)
    service = ConferenceService(JSONStore(config.data_dir), config)
    updated = service.regenerate_missing_qr_codes()
    if not updated:
        console.print("All conferences already have QR codes.")
        return
    for conference_id in updated:
        console.print(f"[green]Generated QR code:[/green] {conference_id}")
    console.print(f"\nUpdated {len(updated)} conference(s).")


@main.command("check-env")
def check_env() -> None:
    """Report which authentication variables are set."""
    table = Table(title="Environment Variables Check", show_header=True)
    table.add_column("Variable", style="cyan")
    table.add_column("Status")
    for name in ENV_VARS:
        value = os.environ.get(name)
        if not value:
            status = "[red]NOT SET[/red]"
        elif name.startswith("ADMIN_PASSWORD_HASH"):
            status = f"[green]SET[/green] (length: {len(value)})"
        else:
            status = "[green]SET[/green]"
        table.add_row(name, status)
    console.print(table)


@main.command("test-seo")
@click.pass_context
def test_seo(ctx: click.Context) -> None:
    """Run SEO generation on a sample conference with the saved AI settings."""
    config = _load_config(ctx)
    settings = AISettingsStore(JSONStore(config.data_dir)).read()
    console.print(f"Testing AI SEO generation with [bold]{settings.provider.display_name}[/bold]...")

    try:
        generator = SEOGenerator(create_llm_client(settings), config.org_name, config.org_url)
        with console.status("[bold green]Generating..."):
            result = generator.run_sample()
    except SiteError as e:
        console.print(f"[red]SEO test failed:[/red] {e.message}")
        sys.exit(1)

    tags = result["metaTags"]
    stats = result["stats"]
    table = Table(title="Generated SEO", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Length")
    table.add_row("Meta title", tags["metaTitle"], str(stats["titleLength"]))
    table.add_row("Meta description", tags["metaDescription"], str(stats["descriptionLength"]))
    table.add_row("Keywords", ", ".join(tags["keywords"]), str(stats["keywordCount"]))
    console.print(table)


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=3000, show_default=True, type=int)
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool) -> None:
    """
    Run the site with uvicorn.

    The app lives in api/index.py beside src/, so this needs a source
    checkout (or an editable install of one).
    """
    import uvicorn

    if not (API_DIR / "index.py").exists():
        console.print(f"[red]Error:[/red] {API_DIR / 'index.py'} not found. Run serve from a source checkout.")
        sys.exit(1)
    uvicorn.run("index:app", host=host, port=port, reload=reload, app_dir=str(API_DIR))


def run_cli() -> None:
    """Entry point for the CLI."""
    main(obj={})


if __name__ == "__main__":
    run_cli()
