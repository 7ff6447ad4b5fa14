"""CLI output formatting functions.

This module contains functions for displaying sync results, tag counts
and destination groups on the command line.
"""

from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from copper_sync.sync.contact import Contact
    from copper_sync.sync.engine import SyncResult
    from copper_sync.sync.group import DestinationGroup

# Rows shown before a list is truncated
DISPLAY_LIMIT = 10


def _show_remaining(total: int, limit: int = DISPLAY_LIMIT) -> None:
    if total > limit:
        click.echo(f"  ... and {total - limit} more")


def show_sync_result(result: "SyncResult", verbose: bool = False) -> None:
    """
    Display the outcome of a sync run.

    Args:
        result: Result returned by the orchestrator
        verbose: If True, list every failure and skipped contact
    """
    limit = None if verbose else DISPLAY_LIMIT

    click.echo("\n" + "=" * 50)
    click.echo(f"Group:   {result.group_name} (id {result.group_id})")
    click.echo(f"Cohort:  {result.cohort_size} contacts")
    click.echo(f"Added:   {result.added_count}")
    click.echo(f"Failed:  {result.failed_count}")
    click.echo(f"Skipped: {len(result.skipped)} (no email)")
    click.echo("=" * 50)

    if result.errors:
        click.echo(click.style("\nFailed contacts:", fg="yellow"))
        for error in result.errors[:limit]:
            click.echo(f"  ! {error.identifier}: {error.reason}")
        if limit is not None:
            _show_remaining(len(result.errors))

    if result.skipped and verbose:
        click.echo("\nSkipped contact ids:")
        for contact_id in result.skipped:
            click.echo(f"  - {contact_id}")

    if result.is_complete:
        click.echo(click.style("\nSync completed successfully!", fg="green"))
    else:
        click.echo(
            click.style(
                f"\nSync completed with {result.failed_count} failed contacts.",
                fg="yellow",
            )
        )


def show_tag_counts(counts: dict[str, int]) -> None:
    """Display each tag with its contact count, largest first."""
    if not counts:
        click.echo("No tagged contacts found.")
        return

    click.echo(f"\nFound {len(counts)} tags:\n")
    width = max(len(tag) for tag in counts)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    for tag, count in ordered:
        click.echo(f"  {tag.ljust(width)}  {count}")


def show_tag_contacts(tag: str, contacts: list["Contact"]) -> None:
    """Display the contacts carrying ``tag``."""
    if not contacts:
        click.echo(f"No contacts tagged '{tag}'.")
        return

    with_email = sum(1 for c in contacts if c.is_syncable())
    click.echo(
        f"\n{len(contacts)} contacts tagged '{tag}' ({with_email} with an email):\n"
    )
    for contact in contacts:
        email = contact.email or click.style("no email", fg="yellow")
        label = contact.name or "(unnamed)"
        company = f", {contact.company}" if contact.company else ""
        click.echo(f"  [{contact.key}] {label}{company} <{email}>")


def show_groups(groups: list["DestinationGroup"], show_all: bool = False) -> None:
    """Display destination groups with their member counts."""
    if not groups:
        click.echo("No groups found.")
        return

    click.echo(f"\nFound {len(groups)} groups:\n")
    shown = groups if show_all else groups[:DISPLAY_LIMIT * 5]
    for group in shown:
        click.echo(f"  {group.name}  ({group.member_count} members, id {group.id})")
    if not show_all:
        _show_remaining(len(groups), DISPLAY_LIMIT * 5)
