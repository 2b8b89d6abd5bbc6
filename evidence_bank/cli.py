"""
CLI interface for the Evidence Bank.

Commands:
    evidence     — Add, list, show, and delete evidence items
    request      — Add, list, show, delete, link, and fulfill evidence requests
    alerts       — Show overdue and approaching deadlines
    digest       — Render a reminder digest grouped by responsible party
    threshold    — Set the alert threshold in days
    stats        — Show collection statistics
    bundle       — Download linked evidence into a zip archive
    export-json  — Write the full state as JSON
    import-json  — Replace the state with a JSON export
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Optional

import click

from evidence_bank import __version__


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__, prog_name="evidence-bank")
@click.option("--db", default=None, help="Database URL for the state store.")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="JSON settings file.")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ...).")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines.")
@click.pass_context
def cli(
    ctx: click.Context,
    db: Optional[str],
    config_path: Optional[str],
    log_level: Optional[str],
    json_logs: bool,
) -> None:
    """Evidence Bank — track audit evidence and requests, watch deadlines, export bundles."""
    from evidence_bank.config import load_config
    from evidence_bank.logging_config import setup_logging

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))
    if db:
        config.db_url = db
    setup_logging(log_level or config.log_level, format_as_json=json_logs or config.log_json)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


def _load_store(ctx: click.Context):
    from evidence_bank.tracker.persistence import StateDB
    from evidence_bank.tracker.state import State

    config = ctx.obj["config"]
    db = StateDB(config.db_url)
    state = db.load() or State(threshold=config.threshold)
    return db, state.to_store()


def _save_store(db, store) -> None:
    from evidence_bank.tracker.state import State

    db.save(State.from_store(store))


# ---------------------------------------------------------------------------
# evidence
# ---------------------------------------------------------------------------

@cli.group()
def evidence() -> None:
    """Manage evidence items."""


@evidence.command(name="add")
@click.option("--id", "evidence_id", default=None, help="Existing id to replace (default: next free id).")
@click.option("--description", "-d", required=True, help="What the evidence is.")
@click.option("--category", "-c", default="", help="Evidence category.")
@click.option("--link", "-l", default="", help="URL where the evidence can be downloaded.")
@click.option("--unit", "-u", default="", help="Organisational unit.")
@click.option("--party", "-p", default="", help="Responsible party.")
@click.option("--received", default=None, help="Date received (YYYY-MM-DD, default: today).")
@click.option("--validity", type=click.Choice(["Valid", "NeedsRevision"]), default="Valid")
@click.option("--note", default="", help="Free-text note.")
@click.option("--request", "request_id", default=None, help="Request this evidence answers.")
@click.pass_context
def evidence_add(
    ctx: click.Context,
    evidence_id: Optional[str],
    description: str,
    category: str,
    link: str,
    unit: str,
    party: str,
    received: Optional[str],
    validity: str,
    note: str,
    request_id: Optional[str],
) -> None:
    """Add or replace an evidence item."""
    from evidence_bank.tracker.store import EvidenceItem, Validity

    db, store = _load_store(ctx)
    item = EvidenceItem(
        id=evidence_id or store.next_evidence_id(),
        description=description,
        category=category,
        source_link=link,
        unit=unit,
        responsible_party=party,
        received_date=(_parse_date(received) if received else date.today()).isoformat(),
        validity=Validity(validity),
        note=note,
    )
    store.upsert_evidence(item)
    if request_id:
        try:
            store.link_evidence(request_id, item.id)
        except KeyError as e:
            raise click.ClickException(str(e.args[0]))
    _save_store(db, store)
    click.echo(f"Saved evidence {item.id}")


@evidence.command(name="list")
@click.option("--query", "-q", default="", help="Case-insensitive text filter.")
@click.option("--json-output", is_flag=True, help="Output as JSON.")
@click.pass_context
def evidence_list(ctx: click.Context, query: str, json_output: bool) -> None:
    """List evidence items."""
    _, store = _load_store(ctx)
    items = store.list_evidence(query)
    if json_output:
        click.echo(json.dumps([e.to_dict() for e in items], indent=2, ensure_ascii=False))
        return
    if not items:
        click.echo("No evidence items.")
        return
    click.echo(f"Evidence items ({len(items)}):")
    for e in items:
        link = "link" if e.source_link else "no link"
        click.echo(
            f"  {e.id:8s} | {e.unit[:15]:15s} | {e.description[:40]:40s} | "
            f"{e.validity.value:13s} | {link}"
        )


@evidence.command(name="show")
@click.argument("evidence_id")
@click.pass_context
def evidence_show(ctx: click.Context, evidence_id: str) -> None:
    """Show one evidence item."""
    _, store = _load_store(ctx)
    item = store.get_evidence(evidence_id)
    if item is None:
        raise click.ClickException(f"Evidence {evidence_id} not found.")
    click.echo(f"Evidence {item.id}")
    click.echo(f"  Description: {item.description}")
    click.echo(f"  Category:    {item.category}")
    click.echo(f"  Link:        {item.source_link or '-'}")
    click.echo(f"  Unit:        {item.unit}")
    click.echo(f"  Responsible: {item.responsible_party}")
    click.echo(f"  Received:    {item.received_date}")
    click.echo(f"  Validity:    {item.validity.value}")
    click.echo(f"  Request:     {item.related_request_id or '-'}")
    if item.note:
        click.echo(f"  Note:        {item.note}")


@evidence.command(name="delete")
@click.argument("evidence_id")
@click.pass_context
def evidence_delete(ctx: click.Context, evidence_id: str) -> None:
    """Delete an evidence item and unlink it from every request."""
    db, store = _load_store(ctx)
    if not store.delete_evidence(evidence_id):
        raise click.ClickException(f"Evidence {evidence_id} not found.")
    _save_store(db, store)
    click.echo(f"Deleted evidence {evidence_id}")


# ---------------------------------------------------------------------------
# request
# ---------------------------------------------------------------------------

@cli.group()
def request() -> None:
    """Manage evidence requests."""


@request.command(name="add")
@click.option("--id", "request_id", default=None, help="Existing id to replace (default: next free id).")
@click.option("--description", "-d", required=True, help="What is being requested.")
@click.option("--unit", "-u", default="", help="Organisational unit asked.")
@click.option("--party", "-p", default="", help="Responsible party.")
@click.option("--request-date", default=None, help="Date of the request (YYYY-MM-DD, default: today).")
@click.option("--deadline", default="", help="Primary deadline (YYYY-MM-DD).")
@click.option("--deadline-alt", default="", help="Secondary deadline (D-M-YY, e.g. 15-10-25).")
@click.option("--evidence", "-e", "evidence_ids", multiple=True, help="Linked evidence id (repeatable).")
@click.option("--status", type=click.Choice(["Pending", "Fulfilled"]), default="Pending")
@click.pass_context
def request_add(
    ctx: click.Context,
    request_id: Optional[str],
    description: str,
    unit: str,
    party: str,
    request_date: Optional[str],
    deadline: str,
    deadline_alt: str,
    evidence_ids: tuple[str, ...],
    status: str,
) -> None:
    """Add or replace an evidence request."""
    from evidence_bank.tracker.deadlines import parse_calendar_date, parse_compact_date
    from evidence_bank.tracker.store import EvidenceRequest, RequestStatus

    if deadline and parse_calendar_date(deadline) is None:
        raise click.BadParameter(f"Invalid deadline: {deadline}. Use YYYY-MM-DD.")
    if deadline_alt and parse_compact_date(deadline_alt) is None:
        raise click.BadParameter(f"Invalid compact deadline: {deadline_alt}. Use D-M-YY.")

    db, store = _load_store(ctx)
    missing = [i for i in evidence_ids if store.get_evidence(i) is None]
    if missing:
        raise click.ClickException(f"Unknown evidence id(s): {', '.join(missing)}")

    req = EvidenceRequest(
        id=request_id or store.next_request_id(),
        description=description,
        request_date=(_parse_date(request_date) if request_date else date.today()).isoformat(),
        unit=unit,
        deadline_date=deadline,
        deadline_alt=deadline_alt,
        responsible_party=party,
        status=RequestStatus(status),
    )
    if req.status == RequestStatus.FULFILLED:
        req.fulfillment_date = date.today().isoformat()
    store.upsert_request(req)
    for evidence_id in evidence_ids:
        store.link_evidence(req.id, evidence_id)
    _save_store(db, store)
    click.echo(f"Saved request {req.id}")


@request.command(name="list")
@click.option("--query", "-q", default="", help="Case-insensitive text filter.")
@click.option("--json-output", is_flag=True, help="Output as JSON.")
@click.pass_context
def request_list(ctx: click.Context, query: str, json_output: bool) -> None:
    """List evidence requests with deadline labels."""
    from evidence_bank.tracker.deadlines import DeadlineEngine

    _, store = _load_store(ctx)
    requests = store.list_requests(query)
    if json_output:
        click.echo(json.dumps([r.to_dict() for r in requests], indent=2, ensure_ascii=False))
        return
    if not requests:
        click.echo("No evidence requests.")
        return

    engine = DeadlineEngine()
    click.echo(f"Evidence requests ({len(requests)}):")
    for r in requests:
        days_str = "-" if r.is_fulfilled else engine.label(engine.days_until_request(r))
        click.echo(
            f"  {r.id:8s} | {r.unit[:15]:15s} | {r.description[:35]:35s} | "
            f"{r.status.value:9s} | {len(r.linked_evidence_ids):2d} linked | {days_str}"
        )


@request.command(name="show")
@click.argument("request_id")
@click.pass_context
def request_show(ctx: click.Context, request_id: str) -> None:
    """Show one evidence request and both of its deadlines."""
    from evidence_bank.tracker.deadlines import DeadlineChannel, DeadlineEngine

    _, store = _load_store(ctx)
    req = store.get_request(request_id)
    if req is None:
        raise click.ClickException(f"Request {request_id} not found.")

    engine = DeadlineEngine()
    primary = engine.days_until_request(req, DeadlineChannel.PRIMARY)
    compact = engine.days_until_request(req, DeadlineChannel.COMPACT)
    click.echo(f"Request {req.id}")
    click.echo(f"  Description:  {req.description}")
    click.echo(f"  Unit:         {req.unit}")
    click.echo(f"  Responsible:  {req.responsible_party}")
    click.echo(f"  Requested:    {req.request_date}")
    click.echo(f"  Deadline:     {req.deadline_date or '-'} ({engine.label(primary)})")
    click.echo(f"  Deadline alt: {req.deadline_alt or '-'} ({engine.label(compact)})")
    click.echo(f"  Status:       {req.status.value}")
    if req.fulfillment_date:
        click.echo(f"  Fulfilled:    {req.fulfillment_date}")
    click.echo(f"  Evidence:     {', '.join(req.linked_evidence_ids) or '-'}")


@request.command(name="delete")
@click.argument("request_id")
@click.pass_context
def request_delete(ctx: click.Context, request_id: str) -> None:
    """Delete a request and clear it from every evidence item."""
    db, store = _load_store(ctx)
    if not store.delete_request(request_id):
        raise click.ClickException(f"Request {request_id} not found.")
    _save_store(db, store)
    click.echo(f"Deleted request {request_id}")


@request.command(name="fulfill")
@click.argument("request_id")
@click.pass_context
def request_fulfill(ctx: click.Context, request_id: str) -> None:
    """Mark a request as fulfilled today."""
    db, store = _load_store(ctx)
    req = store.mark_fulfilled(request_id)
    if req is None:
        click.echo(f"Request {request_id} not found.")
        return
    _save_store(db, store)
    click.echo(f"Request {req.id} fulfilled on {req.fulfillment_date}")


@request.command(name="link")
@click.argument("request_id")
@click.argument("evidence_ids", nargs=-1, required=True)
@click.pass_context
def request_link(ctx: click.Context, request_id: str, evidence_ids: tuple[str, ...]) -> None:
    """Link existing evidence items to a request."""
    db, store = _load_store(ctx)
    try:
        for evidence_id in evidence_ids:
            store.link_evidence(request_id, evidence_id)
    except KeyError as e:
        raise click.ClickException(str(e.args[0]))
    _save_store(db, store)
    click.echo(f"Linked {len(evidence_ids)} evidence item(s) to {request_id}")


# ---------------------------------------------------------------------------
# alerts / digest / threshold / stats
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--threshold", "-t", type=click.IntRange(min=0), default=None,
              help="Override the stored alert threshold (days).")
@click.option("--both-channels", is_flag=True, help="Also alert on the compact deadline.")
@click.option("--json-output", is_flag=True, help="Output as JSON.")
@click.pass_context
def alerts(ctx: click.Context, threshold: Optional[int], both_channels: bool, json_output: bool) -> None:
    """Show overdue and approaching deadlines."""
    from evidence_bank.tracker.alerts import AlertEngine

    _, store = _load_store(ctx)
    engine = AlertEngine(store, threshold=threshold)
    found = engine.check_both_channels() if both_channels else engine.check_all()

    if json_output:
        payload = {"counts": engine.counts(), "alerts": [a.to_dict() for a in found]}
        click.echo(json.dumps(payload, indent=2))
        return

    counts = engine.counts()
    click.echo(f"Overdue: {counts['overdue']} | Approaching (<= {engine.threshold}d): {counts['approaching']}")
    if not found:
        click.echo("No active alerts.")
        return
    click.echo(f"\n=== Active Alerts ({len(found)}) ===")
    for alert in found:
        click.echo(alert.format_text())


@cli.command()
@click.option("--threshold", "-t", type=click.IntRange(min=0), default=None,
              help="Override the stored alert threshold (days).")
@click.option("--compact", is_flag=True, help="Include compact-deadline alerts.")
@click.option("--output", "-o", default=None, help="Output file path (default: stdout).")
@click.pass_context
def digest(ctx: click.Context, threshold: Optional[int], compact: bool, output: Optional[str]) -> None:
    """Render a reminder digest grouped by responsible party."""
    from evidence_bank.tracker.alerts import AlertEngine
    from evidence_bank.tracker.digest import DigestGenerator

    _, store = _load_store(ctx)
    text = DigestGenerator().render(AlertEngine(store, threshold=threshold), include_compact=compact)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Digest written to {output}")
    else:
        click.echo(text)


@cli.command()
@click.argument("days", type=click.IntRange(min=0))
@click.pass_context
def threshold(ctx: click.Context, days: int) -> None:
    """Set the alert threshold in days."""
    db, store = _load_store(ctx)
    store.set_threshold(days)
    _save_store(db, store)
    click.echo(f"Alert threshold set to {days} day(s)")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show collection statistics."""
    _, store = _load_store(ctx)
    data = store.get_stats()

    click.echo("=== Evidence Bank Statistics ===")
    click.echo(f"Evidence items: {data['evidence']}")
    click.echo(f"Requests:       {data['requests']}")
    click.echo(f"Overdue:        {data['overdue']}")
    click.echo(f"Approaching:    {data['approaching']} (threshold {data['threshold']}d)")
    click.echo("\nRequests by status:")
    for status, count in data["by_status"].items():
        click.echo(f"  {status:15s}: {count}")
    click.echo("\nEvidence by validity:")
    for validity, count in data["by_validity"].items():
        click.echo(f"  {validity:15s}: {count}")


# ---------------------------------------------------------------------------
# bundle
# ---------------------------------------------------------------------------

@cli.group()
def bundle() -> None:
    """Download linked evidence into a zip archive."""


@bundle.command(name="request")
@click.argument("request_id")
@click.option("--output", "-o", default=None, help="Archive path (default: <id>-evidence.zip).")
@click.pass_context
def bundle_request(ctx: click.Context, request_id: str, output: Optional[str]) -> None:
    """Archive the evidence linked to one request."""
    _, store = _load_store(ctx)
    req = store.get_request(request_id)
    if req is None:
        raise click.ClickException(f"Request {request_id} not found.")
    if not req.linked_evidence_ids:
        raise click.ClickException(f"Request {request_id} has no linked evidence.")
    result = _exporter(ctx).export_request(req, store.evidence_snapshot())
    _write_archive(result, output)


@bundle.command(name="fulfilled")
@click.option("--output", "-o", default=None, help="Archive path.")
@click.pass_context
def bundle_fulfilled(ctx: click.Context, output: Optional[str]) -> None:
    """Archive the evidence of every fulfilled request."""
    _, store = _load_store(ctx)
    if not store.fulfilled_with_evidence():
        raise click.ClickException("No fulfilled request has linked evidence.")
    result = _exporter(ctx).export_fulfilled(store)
    _write_archive(result, output)


def _exporter(ctx: click.Context):
    from evidence_bank.bundles.exporter import BundleExporter

    config = ctx.obj["config"]
    return BundleExporter(fetcher_config=config.fetcher_config(), max_workers=config.max_workers)


def _write_archive(result, output: Optional[str]) -> None:
    path = Path(output or result.filename)
    path.write_bytes(result.archive)
    click.echo(result.summary())
    click.echo(f"Archive written to {path}")


# ---------------------------------------------------------------------------
# export-json / import-json
# ---------------------------------------------------------------------------

@cli.command(name="export-json")
@click.option("--output", "-o", default=None, help="Output file path (default: stdout).")
@click.pass_context
def export_json(ctx: click.Context, output: Optional[str]) -> None:
    """Write the full state as JSON."""
    from evidence_bank.tracker.state import State, dumps_state

    _, store = _load_store(ctx)
    text = dumps_state(State.from_store(store))
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"State written to {output}")
    else:
        click.echo(text)


@cli.command(name="import-json")
@click.argument("import_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_json(ctx: click.Context, import_file: str) -> None:
    """Replace the state with a JSON export."""
    from evidence_bank.tracker.state import MalformedImportError, import_into

    db, store = _load_store(ctx)
    try:
        import_into(store, Path(import_file).read_text(encoding="utf-8"))
    except MalformedImportError as e:
        raise click.ClickException(f"Import rejected: {e}")
    _save_store(db, store)
    click.echo(f"Imported {len(store.evidence)} evidence item(s) and {len(store.requests)} request(s)")


# ---------------------------------------------------------------------------
# Utility
# ---------------------------------------------------------------------------

def _parse_date(s: str) -> date:
    from evidence_bank.tracker.deadlines import parse_calendar_date

    parsed = parse_calendar_date(s)
    if parsed is None:
        raise click.BadParameter(f"Invalid date format: {s}. Use YYYY-MM-DD.")
    return parsed


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
