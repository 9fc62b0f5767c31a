"""CLI interface for disktidy."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import click

from disktidy.core.cleaner import CleanupCoordinator
from disktidy.core.controller import ScanController
from disktidy.core.domain_loader import load_domains
from disktidy.core.registry import DomainRegistry, UnknownDomainError
from disktidy.models.domain import ScanDomain
from disktidy.models.scan_session import ScanStatus
from disktidy.settings import ClientConfig
from disktidy.utils import bytes_to_human, format_elapsed, parse_option


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _build_registry() -> DomainRegistry:
    registry = DomainRegistry()
    load_domains(registry)
    return registry


def _get_domain(domain_id: str) -> ScanDomain:
    try:
        return _build_registry().require(domain_id)
    except UnknownDomainError as e:
        click.echo(f"{e}. Run 'disktidy domains' for details.", err=True)
        sys.exit(1)


@contextmanager
def _worker() -> Iterator[tuple[Any, Any]]:
    """Yield a connected (backend, event source) pair for the disk worker."""
    from disktidy.dbus_client import DBusBackend, DBusEventSource

    backend = DBusBackend()
    events = DBusEventSource(backend)
    try:
        yield backend, events
    finally:
        events.close()
        backend.disconnect()


def _parse_options(raw: tuple[str, ...]) -> dict[str, Any]:
    options: dict[str, Any] = {}
    for text in raw:
        try:
            key, value = parse_option(text)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="'-o'") from exc
        options[key] = value
    return options


async def _run_scan(controller: ScanController, options: dict[str, Any], done: asyncio.Event) -> None:
    """Start a scan and wait for its terminal state."""
    await controller.start(**options)
    if controller.status.is_active:
        await done.wait()
    if controller.status is ScanStatus.COMPLETED and controller.result is None:
        await controller.fetch_result()


def _make_controller(domain: ScanDomain, backend: Any, events: Any, config: ClientConfig, show_progress: bool):
    done = asyncio.Event()
    last_percent = [-1]
    controller: ScanController | None = None

    def on_changed() -> None:
        if controller is None:
            return
        if controller.status.is_terminal:
            done.set()
            return
        progress = controller.progress
        if show_progress and progress is not None and int(progress.percent) != last_percent[0]:
            last_percent[0] = int(progress.percent)
            click.echo(
                f"\r  {last_percent[0]:3d}%  {progress.scanned_count:,} scanned, {progress.found_count:,} found",
                nl=False,
                err=True,
            )

    controller = ScanController.from_config(domain, backend, events, config, on_changed=on_changed)
    return controller, done


def _category_dict(state) -> dict[str, Any]:
    return {
        "key": state.key,
        "display_name": state.display_name,
        "file_count": state.file_count,
        "total_size": state.total_size,
        "loaded": len(state.files),
        "has_more": state.has_more,
        "files": [
            {"path": f.path, "id": f.id, "name": f.name, "size": f.size, "modified_time": f.modified_time}
            for f in state.files
        ],
    }


def _echo_error(controller: ScanController, as_json: bool) -> None:
    message = controller.error or f"Scan ended: {controller.status.value}"
    if as_json:
        click.echo(json.dumps({"status": controller.status.value, "error": message}, indent=2))
    else:
        click.echo(f"  {click.style('✗', fg='red')} {message}", err=True)


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """disktidy: drive disk scans of the disktidy worker and clean up their results."""
    _setup_logging(verbose)


# ── domains ──────────────────────────────────────────────────────────────

@main.command("domains")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def domains_cmd(as_json: bool) -> None:
    """List available scan domains."""
    registry = _build_registry()
    if as_json:
        data = [
            {
                "id": d.id,
                "name": d.name,
                "description": d.description,
                "supports_paging": d.supports_paging,
                "default_options": d.default_options,
            }
            for d in registry.get_all()
        ]
        click.echo(json.dumps(data, indent=2))
        return

    for domain in registry.get_all():
        click.echo(f"  {click.style(domain.id, fg='cyan', bold=True):30s}  {domain.name}")
        if domain.description:
            click.echo(f"    {domain.description}")


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@click.argument("domain_id")
@click.option("--option", "-o", "raw_options", multiple=True, help="Scan option as key=value (repeatable)")
@click.option("--all-pages", is_flag=True, help="Fetch every page of every category")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(domain_id: str, raw_options: tuple[str, ...], all_pages: bool, as_json: bool) -> None:
    """Run a scan and show its categories (preview only, never deletes)."""
    domain = _get_domain(domain_id)
    options = _parse_options(raw_options)
    config = ClientConfig.from_settings()
    ok = asyncio.run(_scan(domain, options, config, all_pages, as_json))
    if not ok:
        sys.exit(1)


async def _scan(
    domain: ScanDomain,
    options: dict[str, Any],
    config: ClientConfig,
    all_pages: bool,
    as_json: bool,
) -> bool:
    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning {domain.name}...\n")

    with _worker() as (backend, events):
        controller, done = _make_controller(domain, backend, events, config, show_progress=not as_json)
        try:
            await _run_scan(controller, options, done)
            if not as_json:
                click.echo("", err=True)
            if controller.status is not ScanStatus.COMPLETED or controller.result is None:
                _echo_error(controller, as_json)
                return False
            if all_pages:
                for state in controller.loader.categories:
                    await controller.loader.load_all(state.key)

            loader = controller.loader
            if as_json:
                data = {
                    "domain": domain.id,
                    "session_id": controller.session_id,
                    "status": controller.status.value,
                    "file_count": sum(s.file_count for s in loader.categories),
                    "total_size": sum(s.total_size for s in loader.categories),
                    "categories": [_category_dict(s) for s in loader.categories],
                }
                click.echo(json.dumps(data, indent=2))
                return True

            if not loader.categories:
                click.echo("Nothing found.")
                return True
            for state in loader.categories:
                more = f", {len(state.files):,} loaded" if state.has_more else ""
                click.echo(
                    f"  {click.style('✓', fg='green')} {state.display_name:35s} — "
                    f"{click.style(bytes_to_human(state.total_size), fg='green', bold=True)} "
                    f"({state.file_count:,} files{more})"
                )
            total = sum(s.total_size for s in loader.categories)
            elapsed = controller.result.duration_ms / 1000
            click.echo(f"\nTotal: {click.style(bytes_to_human(total), fg='green', bold=True)}", nl=False)
            click.echo(f" in {format_elapsed(elapsed)}\n" if elapsed else "\n")
            return True
        finally:
            await controller.cleanup()


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@click.argument("domain_id")
@click.option("--option", "-o", "raw_options", multiple=True, help="Scan option as key=value (repeatable)")
@click.option("--category", "-c", "categories", multiple=True, help="Only clean this category (repeatable)")
@click.option("--search", "-s", "search", default="", help="Only clean files matching this text")
@click.option("--type", "-t", "file_types", multiple=True, help="Only clean files with this extension (repeatable)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--dry-run", is_flag=True, help="Show what would be deleted without doing it")
@click.option("--permanent", is_flag=True, help="Delete permanently instead of moving to the recycle bin")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def clean(
    domain_id: str,
    raw_options: tuple[str, ...],
    categories: tuple[str, ...],
    search: str,
    file_types: tuple[str, ...],
    yes: bool,
    dry_run: bool,
    permanent: bool,
    as_json: bool,
) -> None:
    """Scan a domain and delete what it found."""
    domain = _get_domain(domain_id)
    options = _parse_options(raw_options)
    config = ClientConfig.from_settings()
    ok = asyncio.run(
        _clean(domain, options, config, categories, (search, file_types), yes, dry_run, permanent, as_json)
    )
    if not ok:
        sys.exit(1)


async def _clean(
    domain: ScanDomain,
    options: dict[str, Any],
    config: ClientConfig,
    categories: tuple[str, ...],
    filters: tuple[str, tuple[str, ...]],
    yes: bool,
    dry_run: bool,
    permanent: bool,
    as_json: bool,
) -> bool:
    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning {domain.name}...\n")

    with _worker() as (backend, events):
        controller, done = _make_controller(domain, backend, events, config, show_progress=not as_json)
        try:
            await _run_scan(controller, options, done)
            if not as_json:
                click.echo("", err=True)
            if controller.status is not ScanStatus.COMPLETED or controller.result is None:
                _echo_error(controller, as_json)
                return False

            loader = controller.loader
            loader.set_filter(*filters)
            keys = list(dict.fromkeys(categories)) or [s.key for s in loader.categories]
            for key in keys:
                if key not in loader:
                    if not as_json:
                        click.echo(f"  {click.style('·', fg='bright_black')} {key:35s} — nothing found")
                    continue
                await loader.load_all(key)
                controller.selection.select(f.key for f in loader.visible_files(key))

            coordinator = CleanupCoordinator(controller, move_to_recycle_bin=config.move_to_recycle_bin)
            plan = coordinator.plan()
            if not plan:
                if as_json:
                    click.echo(json.dumps({"status": "nothing_to_clean", "skipped": len(plan.skipped)}))
                else:
                    click.echo("Nothing to clean.")
                return True

            if not as_json:
                for key in keys:
                    state = loader.get(key)
                    if state is None:
                        continue
                    chosen = [f for f in state.files if f.key in controller.selection]
                    if not chosen:
                        continue
                    click.echo(
                        f"  {click.style('✓', fg='green')} {state.display_name:35s} — "
                        f"{click.style(bytes_to_human(sum(f.size for f in chosen)), fg='green', bold=True)} "
                        f"({len(chosen):,} files)"
                    )
                if plan.skipped:
                    click.echo(
                        f"  {click.style('!', fg='yellow')} {len(plan.skipped):,} items are not marked safe "
                        "to delete and will be kept"
                    )
                click.echo(f"\nTotal: {click.style(bytes_to_human(plan.total_size), fg='green', bold=True)}\n")

            if dry_run:
                if as_json:
                    data = {
                        "status": "dry_run",
                        "would_delete": len(plan.entries),
                        "would_free_bytes": plan.total_size,
                        "skipped": len(plan.skipped),
                    }
                    click.echo(json.dumps(data, indent=2))
                else:
                    click.echo("(dry run — no files were deleted)")
                return True

            if not yes and not as_json:
                target = "permanently delete" if permanent else "move to the recycle bin"
                if not click.confirm(f"{target.capitalize()} {len(plan.entries):,} items?", default=False):
                    click.echo("Aborted.")
                    return True

            recycle = False if permanent else config.move_to_recycle_bin
            result = await coordinator.delete(move_to_recycle_bin=recycle)
            if result is None:
                message = controller.error or "Delete failed"
                if as_json:
                    click.echo(json.dumps({"status": "error", "error": message}, indent=2))
                else:
                    click.echo(f"  {click.style('✗', fg='red')} {message}", err=True)
                return False

            if as_json:
                data = {
                    "status": "cleaned",
                    "deleted_count": result.deleted_count,
                    "deleted_size": result.deleted_size,
                    "failed_count": result.failed_count,
                    "failed_items": [{"path": i.path, "id": i.id, "error": i.error} for i in result.failed_items],
                }
                click.echo(json.dumps(data, indent=2))
                return True

            for item in result.failed_items:
                click.echo(f"  {click.style('!', fg='yellow')} {item.path} — {item.error or 'failed'}")
            click.echo(
                f"\nDeleted {result.deleted_count:,} items, freed "
                f"{click.style(bytes_to_human(result.deleted_size), fg='green', bold=True)}"
            )
            if result.partial:
                click.echo(f"{result.failed_count:,} items could not be deleted.")
            click.echo()
            return True
        finally:
            await controller.cleanup()
