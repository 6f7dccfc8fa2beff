"""
Command line entry point for feedcast.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from feedcast.config_loader import CredentialStore, load_app_config, validate_config
from feedcast.errors import ConfigError, PersistenceError, TokenRefreshError
from feedcast.models import Credential
from feedcast.pipeline import build_orchestrator
from feedcast.scheduler import run_scheduler
from feedcast.settings import FeedcastSettings, load_settings
from feedcast.status import build_status
from feedcast.targets.factory import build_oauth_client
from utils.security import mask_token

logger = logging.getLogger("feedcast")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: FeedcastSettings, verbose: bool = False) -> None:
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def _load_validated(settings: FeedcastSettings):
    try:
        config = load_app_config(settings.config_path)
        validate_config(config)
    except ConfigError as exc:
        raise click.ClickException(f"Configuration validation failed: {exc}") from exc
    return config


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Configuration file (YAML or JSON).")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool):
    load_dotenv()
    settings = load_settings(config_path)
    configure_logging(settings, verbose)
    ctx.obj = settings


@cli.command()
@click.option("--once", is_flag=True, help="Run a single sweep and exit.")
@click.option("--dry-run", is_flag=True, help="Check feeds without publishing.")
@click.pass_obj
def run(settings: FeedcastSettings, once: bool, dry_run: bool):
    """Check feeds and publish new items."""
    config = _load_validated(settings)
    orchestrator = build_orchestrator(settings, config)
    logger.info(
        "Starting feedcast with %d feeds and %d publishers",
        orchestrator.registry.enabled_count(),
        len(orchestrator.dispatcher.targets),
    )
    if once:
        summary = orchestrator.run_sweep(dry_run=dry_run)
        click.echo(
            f"Checked {summary.feeds_checked} feeds ({summary.feeds_failed} failed): "
            f"{summary.new_items_found} new, {summary.items_published} published"
        )
        return
    run_scheduler(orchestrator, config.schedule, dry_run=dry_run)


@cli.command("check-config")
@click.pass_obj
def check_config(settings: FeedcastSettings):
    """Validate the configuration file."""
    config = _load_validated(settings)
    click.echo(f"Configuration OK: {len(config.feeds)} feeds, {len(config.publishers)} publishers")


@cli.command()
@click.pass_obj
def status(settings: FeedcastSettings):
    """Show configured feeds and ledger counts."""
    config = _load_validated(settings)
    orchestrator = build_orchestrator(settings, config)
    click.echo(json.dumps(build_status(orchestrator), indent=2, ensure_ascii=False))


@cli.command()
@click.option("--days", type=int, default=None, help="Retention in days (defaults to config).")
@click.pass_obj
def cleanup(settings: FeedcastSettings, days: Optional[int]):
    """Back up and prune the publish ledger."""
    config = _load_validated(settings)
    orchestrator = build_orchestrator(settings, config)
    removed = orchestrator.run_cleanup(retention_days=days)
    click.echo(f"Removed {removed} old ledger records")


@cli.command("oauth-url")
@click.argument("publisher_id")
@click.pass_obj
def oauth_url(settings: FeedcastSettings, publisher_id: str):
    """Print the authorization URL for an OAuth publisher."""
    config = _load_validated(settings)
    publisher = config.publishers.get(publisher_id)
    if publisher is None:
        raise click.ClickException(f"Publisher '{publisher_id}' not found")
    try:
        client = build_oauth_client(publisher_id, publisher)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    url, verifier = client.authorization_url(pkce=publisher.type != "linkedin")
    click.echo("Open this URL in your browser and authorize the application:")
    click.echo(url)
    if verifier:
        click.echo(f"\nCode verifier (pass to oauth-exchange --verifier): {verifier}")


@cli.command("oauth-exchange")
@click.argument("publisher_id")
@click.argument("code")
@click.option("--verifier", default=None, help="PKCE code verifier printed by oauth-url.")
@click.pass_obj
def oauth_exchange(settings: FeedcastSettings, publisher_id: str, code: str, verifier: Optional[str]):
    """Exchange an authorization code and store the tokens in the config file."""
    config = _load_validated(settings)
    publisher = config.publishers.get(publisher_id)
    if publisher is None:
        raise click.ClickException(f"Publisher '{publisher_id}' not found")
    try:
        grant = build_oauth_client(publisher_id, publisher).exchange_code(code.strip(), code_verifier=verifier)
    except (ConfigError, TokenRefreshError) as exc:
        raise click.ClickException(str(exc)) from exc
    try:
        CredentialStore(Path(settings.config_path)).save(
            publisher_id, Credential(access_token=grant.access_token, refresh_token=grant.refresh_token)
        )
    except PersistenceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Access token: {mask_token(grant.access_token)}")
    if grant.expires_in:
        click.echo(f"Expires in: {grant.expires_in} seconds")
    click.echo("Tokens saved to configuration")


if __name__ == "__main__":  # pragma: no cover
    cli()
