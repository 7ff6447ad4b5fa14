"""
Command-line interface for copper_sync.

Provides CLI commands for browsing Copper tags, listing MailerLite groups
and synchronizing a cohort of Copper contacts into a MailerLite group.

Usage:
    # Show help
    copper-sync --help

    # Browse tags
    copper-sync tags
    copper-sync tags VIP

    # Run synchronization
    copper-sync sync --tag VIP
    copper-sync sync --tag VIP --tag Events --match all
    copper-sync sync --ids 101,102 --group-name "Hand picked"

    # Try it without credentials
    copper-sync --demo sync --tag VIP
"""

import json
import sys
from pathlib import Path
from typing import Any

import click

from copper_sync import __version__
from copper_sync.api.base import ContactSource, SubscriberDestination
from copper_sync.api.copper_api import CopperAPI, CopperAPIError
from copper_sync.api.demo import DEMO_BANNER, DemoCopperAPI, DemoMailerLiteAPI
from copper_sync.api.mailerlite_api import MailerLiteAPI, MailerLiteAPIError
from copper_sync.auth.credentials import CredentialsError, load_credentials
from copper_sync.cli.formatters import (
    show_groups,
    show_sync_result,
    show_tag_contacts,
    show_tag_counts,
)
from copper_sync.config.generator import save_config_file
from copper_sync.config.loader import (
    DEFAULT_CONFIG_FILE as CONFIG_FILE_NAME,
)
from copper_sync.config.loader import (
    ConfigError,
    ConfigLoader,
    copper_search_filter,
    with_defaults,
)
from copper_sync.sync.engine import (
    CohortSelector,
    NoMatchingContactsError,
    SyncOrchestrator,
    SyncRequestError,
)
from copper_sync.sync.membership import MAX_CONCURRENCY_LIMIT, MembershipSynchronizer
from copper_sync.sync.resolver import GroupResolutionError, GroupResolver
from copper_sync.sync.tags import VALID_MATCH_MODES, build_tag_index
from copper_sync.utils import DEFAULT_CONFIG_DIR, resolve_config_dir
from copper_sync.utils.logging import cleanup_old_logs, get_logger, setup_logging

# Default configuration file
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / CONFIG_FILE_NAME

# Errors that end a command with exit code 1
FATAL_ERRORS = (
    CredentialsError,
    CopperAPIError,
    MailerLiteAPIError,
    GroupResolutionError,
    NoMatchingContactsError,
    SyncRequestError,
)


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: str | None, config_dir: Path) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file)
    return config_dir / CONFIG_FILE_NAME


def parse_contact_ids(
    ctx: click.Context, _param: click.Parameter, value: str | None
) -> list[str]:
    """Split a comma-separated --ids value for Click."""
    if not value:
        return []
    ids = [part.strip() for part in value.split(",") if part.strip()]
    if not ids:
        raise click.BadParameter("Expected a comma-separated list of contact ids")
    return ids


def build_providers(
    settings: dict[str, Any], config_dir: Path, demo: bool
) -> tuple[ContactSource, SubscriberDestination]:
    """
    Create the source and destination providers.

    Args:
        settings: Configuration merged with defaults
        config_dir: Directory holding credentials.json
        demo: If True, return the in-memory demo providers

    Raises:
        CredentialsError: If live credentials are missing
    """
    if demo:
        return DemoCopperAPI(), DemoMailerLiteAPI()

    credentials = load_credentials(config_dir)
    http_settings = {
        "max_retries": settings["api_max_retries"],
        "initial_retry_delay": settings["api_initial_retry_delay"],
        "max_retry_delay": settings["api_max_retry_delay"],
        "timeout": settings["request_timeout"],
    }
    source = CopperAPI(
        credentials.copper_api_key,
        credentials.copper_user_email,
        base_url=settings["copper_base_url"],
        page_size=settings["page_size"],
        max_pages=settings["max_pages"],
        **http_settings,
    )
    destination = MailerLiteAPI(
        credentials.mailerlite_api_key,
        base_url=settings["mailerlite_base_url"],
        **http_settings,
    )
    return source, destination


def build_orchestrator(
    settings: dict[str, Any],
    config_dir: Path,
    demo: bool,
    max_concurrency: int | None = None,
) -> SyncOrchestrator:
    """Wire providers, resolver and synchronizer into an orchestrator."""
    source, destination = build_providers(settings, config_dir, demo)
    return SyncOrchestrator(
        source=source,
        resolver=GroupResolver(destination),
        synchronizer=MembershipSynchronizer(
            destination, max_concurrency or settings["max_concurrency"]
        ),
        group_name_template=settings["group_name_template"],
        demo=demo,
        search_filter=copper_search_filter(settings),
    )


@click.group()
@click.version_option(version=__version__, prog_name="copper-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="COPPER_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.copper-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="COPPER_SYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.option(
    "--demo",
    is_flag=True,
    help="Use built-in sample data instead of the live Copper and MailerLite APIs.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
    demo: bool,
) -> None:
    """
    Copper to MailerLite contact sync.

    Pushes Copper contacts selected by tag or by id into a MailerLite
    group, creating the group when it does not exist yet.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Keep going on defaults so `init --force` can repair the file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    settings = with_defaults(config)
    ctx.obj["config"] = settings

    # CLI flags take precedence over the config file
    effective_verbose = verbose or settings["verbose"]
    ctx.obj["verbose"] = effective_verbose
    ctx.obj["demo"] = demo or settings["demo_mode"]

    log_dir = Path(settings["log_dir"]) if settings.get("log_dir") else None
    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = settings["log_retention_count"]
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


def _announce_demo(ctx: click.Context) -> None:
    if ctx.obj["demo"]:
        get_logger(__name__).warning(DEMO_BANNER)
        click.echo(click.style(DEMO_BANNER, fg="yellow"), err=True)


# =============================================================================
# Init Command
# =============================================================================


@cli.command("init")
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        # Create config file (fails if already exists)
        copper-sync init

        # Overwrite existing config file
        copper-sync init --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Set COPPER_API_KEY, COPPER_USER_EMAIL and MAILERLITE_API_KEY")
        click.echo("2. Run 'copper-sync tags' to see the available tags")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


# =============================================================================
# Tags Command
# =============================================================================


@cli.command("tags")
@click.argument("tag", required=False)
@click.pass_context
def tags_command(ctx: click.Context, tag: str | None) -> None:
    """
    List Copper tags, or the contacts carrying TAG.

    Examples:

        # Every tag with its contact count
        copper-sync tags

        # Contacts tagged VIP
        copper-sync tags VIP
    """
    logger = get_logger(__name__)
    _announce_demo(ctx)

    try:
        source, _ = build_providers(
            ctx.obj["config"], ctx.obj["config_dir"], ctx.obj["demo"]
        )
        click.echo("Fetching contacts from Copper...")
        search_filter = copper_search_filter(ctx.obj["config"])
        index = build_tag_index(source.fetch_all_contacts(search_filter or None))
    except FATAL_ERRORS as e:
        logger.error(f"Failed to list tags: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if tag is None:
        show_tag_counts(index.counts())
    else:
        show_tag_contacts(tag, index.contacts_for(tag))


# =============================================================================
# Groups Command
# =============================================================================


@cli.command("groups")
@click.option("--all", "-a", "show_all", is_flag=True, help="Show every group.")
@click.pass_context
def groups_command(ctx: click.Context, show_all: bool) -> None:
    """List MailerLite groups."""
    logger = get_logger(__name__)
    _announce_demo(ctx)

    try:
        _, destination = build_providers(
            ctx.obj["config"], ctx.obj["config_dir"], ctx.obj["demo"]
        )
        groups = destination.list_groups()
    except FATAL_ERRORS as e:
        logger.error(f"Failed to list groups: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    show_groups(sorted(groups, key=lambda g: g.name), show_all=show_all)


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--tag",
    "-t",
    "tags",
    multiple=True,
    help="Copper tag to sync; repeat to combine tags.",
)
@click.option(
    "--ids",
    callback=parse_contact_ids,
    help="Comma-separated Copper contact ids to sync.",
)
@click.option(
    "--match",
    "-m",
    "match_mode",
    type=click.Choice(sorted(VALID_MATCH_MODES), case_sensitive=False),
    default="any",
    help="How repeated --tag options combine (default: any).",
)
@click.option(
    "--group-name",
    "-g",
    help="MailerLite group name (default: derived from the tags).",
)
@click.option(
    "--concurrency",
    type=click.IntRange(1, MAX_CONCURRENCY_LIMIT),
    help="Subscriber upserts in flight at once.",
)
@click.option(
    "--json", "as_json", is_flag=True, help="Print the result as JSON."
)
@click.pass_context
def sync_command(
    ctx: click.Context,
    tags: tuple[str, ...],
    ids: list[str],
    match_mode: str,
    group_name: str | None,
    concurrency: int | None,
    as_json: bool,
) -> None:
    """
    Synchronize a cohort of Copper contacts into a MailerLite group.

    Select the cohort with one or more --tag options or with --ids. The
    group is looked up by exact name and created when missing. Contacts
    without an email are skipped; contacts MailerLite rejects are reported
    without stopping the rest. Exits 1 only when the run cannot complete.

    Examples:

        # Everyone tagged VIP into "Copper - VIP (ANY)"
        copper-sync sync --tag VIP

        # Contacts carrying both tags
        copper-sync sync -t VIP -t Events --match all

        # Explicit contacts into a named group
        copper-sync sync --ids 101,102 --group-name "Hand picked"
    """
    logger = get_logger(__name__)
    _announce_demo(ctx)

    if bool(tags) == bool(ids):
        raise click.UsageError("Use either --tag or --ids (exactly one of them).")

    try:
        if ids:
            selector = CohortSelector.for_ids(ids)
        else:
            selector = CohortSelector.for_tags(tags, match_mode.lower())

        orchestrator = build_orchestrator(
            ctx.obj["config"], ctx.obj["config_dir"], ctx.obj["demo"], concurrency
        )
        if not as_json:
            click.echo(f"Synchronizing {selector.describe()}...")
        result = orchestrator.synchronize(selector, group_name)
    except FATAL_ERRORS as e:
        logger.error(f"Sync failed: {e}")
        click.echo(click.style(f"\nSync failed: {e}", fg="red"), err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Sync failed: {e}")
        click.echo(click.style(f"\nSync failed: {e}", fg="red"), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        show_sync_result(result, verbose=ctx.obj["verbose"])
