#!/usr/bin/env python3
"""
Requisition Receiving: CLI entry point.

Usage examples:
  python main.py record 12 34 --qty 10 --invoice NF-001 --actor ana --role admin
  python main.py record 12 34 --qty 10 --rejected 2 --invoice NF-002 --supplier 7 --actor ana --role admin
  python main.py status 12                                        # Per-item receiving status
  python main.py receipts 12 34                                   # Receipt history of an item
  python main.py overview 12                                      # Receipt totals for a request
  python main.py report --format xml --start 2024-01-01 --end 2024-01-31
  python main.py serve --port 8000                                # Run the HTTP API
"""
import json
import logging
import sys
from pathlib import Path

import click

from config import Config
from models.request import ACTOR_ROLES, Actor
from receiving.errors import ReceivingError


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _ledger(config: Config):
    from api.app import build_ledger
    return build_ledger(config)


def _fail(exc: ReceivingError) -> None:
    field = getattr(exc, "field", None)
    prefix = f"{field}: " if field else ""
    click.echo(f"✗ {type(exc).__name__}: {prefix}{exc.message}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", default=None, type=click.Path(), help="Path to the receiving database")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db: str | None) -> None:
    """Requisition Receiving: record deliveries and track fulfillment."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)

    config = Config()
    if db:
        config.db_path = Path(db)
    ctx.obj["config"] = config


# --------------------------------------------------------------------
# record command
# --------------------------------------------------------------------

@cli.command()
@click.argument("request_id", type=int)
@click.argument("item_id", type=int)
@click.option("--qty", "quantity", required=True, type=int, help="Quantity received")
@click.option("--rejected", default=0, type=int, help="Quantity rejected on inspection")
@click.option("--invoice", "invoice_number", required=True, help="Invoice number")
@click.option("--invoice-date", default=None, help="Invoice date (YYYY-MM-DD)")
@click.option("--lot", "lot_number", default=None, help="Lot / batch number")
@click.option("--expires", "expiration_date", default=None, help="Expiration date (YYYY-MM-DD)")
@click.option("--supplier", "supplier_id", default=None, type=int, help="Delivering supplier id")
@click.option(
    "--condition", default="good",
    type=click.Choice(["good", "damaged", "partial_damage"]),
    help="Condition of the delivery",
)
@click.option("--checked", is_flag=True, help="Mark the delivery as quality-checked")
@click.option("--quality-notes", default="", help="Quality inspection notes")
@click.option("--notes", default="", help="Free-form notes")
@click.option("--key", "idempotency_key", default=None, help="Idempotency key")
@click.option("--actor", "actor_id", required=True, help="User id recorded as receiver")
@click.option("--role", required=True, type=click.Choice(ACTOR_ROLES), help="Role of the acting user")
@click.pass_context
def record(
    ctx: click.Context,
    request_id: int,
    item_id: int,
    quantity: int,
    rejected: int,
    invoice_number: str,
    invoice_date: str | None,
    lot_number: str | None,
    expiration_date: str | None,
    supplier_id: int | None,
    condition: str,
    checked: bool,
    quality_notes: str,
    notes: str,
    idempotency_key: str | None,
    actor_id: str,
    role: str,
) -> None:
    """Record a delivery of ITEM_ID on request REQUEST_ID."""
    ledger = _ledger(ctx.obj["config"])
    payload = {
        "quantityReceived": quantity,
        "rejectedQuantity": rejected,
        "invoiceNumber":    invoice_number,
        "invoiceDate":      invoice_date,
        "lotNumber":        lot_number,
        "expirationDate":   expiration_date,
        "supplierId":       supplier_id,
        "receiptCondition": condition,
        "qualityChecked":   checked,
        "qualityNotes":     quality_notes,
        "notes":            notes,
        "idempotencyKey":   idempotency_key,
    }
    try:
        result = ledger.record_receipt(request_id, item_id, payload, Actor(id=actor_id, role=role))
    except ReceivingError as exc:
        _fail(exc)
        return

    f = result.fulfillment
    click.echo()
    if result.duplicate:
        click.echo(f"  Receipt {result.receipt.id} already recorded with this key, nothing added.")
    else:
        click.echo(f"  ✓ Receipt {result.receipt.id} recorded")
    click.echo(f"  Item:       {f.product_name} (#{f.item_id})")
    click.echo(f"  Ordered:    {f.quantity_ordered}")
    click.echo(f"  Received:   {f.quantity_received}")
    click.echo(f"  Pending:    {f.quantity_pending}")
    click.echo(f"  Status:     {f.status}")
    for w in result.warnings:
        click.echo(f"  ⚠ {w.description}")
    click.echo()


# --------------------------------------------------------------------
# status command
# --------------------------------------------------------------------

@cli.command()
@click.argument("request_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def status(ctx: click.Context, request_id: int, as_json: bool) -> None:
    """Show the receiving status of every approved item on a request."""
    ledger = _ledger(ctx.obj["config"])
    try:
        result = ledger.get_request_fulfillment_summary(request_id)
    except ReceivingError as exc:
        _fail(exc)
        return

    if as_json:
        click.echo(json.dumps(result.model_dump(by_alias=True), indent=2))
        return

    s = result.summary
    click.echo(f"\n=== Request {request_id}: {s.percent_received}% received ===\n")
    click.echo(
        f"  {s.total_items} items  |  {s.complete_items} complete  |  "
        f"{s.partial_items} partial  |  {s.pending_items} pending  |  "
        f"{s.over_delivered_items} over-delivered\n"
    )
    for f in result.items:
        click.echo(
            f"  #{f.item_id:<5} {(f.product_name or '')[:30]:<30} "
            f"{f.quantity_received:>5} / {f.quantity_ordered:<5} {f.status}"
        )
    click.echo()


# --------------------------------------------------------------------
# receipts command
# --------------------------------------------------------------------

@cli.command()
@click.argument("request_id", type=int)
@click.argument("item_id", type=int)
@click.pass_context
def receipts(ctx: click.Context, request_id: int, item_id: int) -> None:
    """List the receipts recorded for one item, oldest first."""
    ledger = _ledger(ctx.obj["config"])
    try:
        events = ledger.list_receipts(request_id, item_id)
    except ReceivingError as exc:
        _fail(exc)
        return

    if not events:
        click.echo("No receipts recorded.")
        return
    for r in events:
        rejected = f" (-{r.rejected_quantity} rejected)" if r.rejected_quantity else ""
        click.echo(
            f"  {r.created_at[:19]}  #{r.id:<5} {r.quantity_received}{rejected}  "
            f"invoice {r.invoice_number}  by {r.received_by}  [{r.receipt_condition}]"
        )


# --------------------------------------------------------------------
# overview command
# --------------------------------------------------------------------

@cli.command()
@click.argument("request_id", type=int)
@click.pass_context
def overview(ctx: click.Context, request_id: int) -> None:
    """Show receipt totals for a request."""
    ledger = _ledger(ctx.obj["config"])
    try:
        o = ledger.get_receipts_overview(request_id)
    except ReceivingError as exc:
        _fail(exc)
        return

    click.echo(f"\n  Receipts:          {o.total_receipts}")
    click.echo(f"  Quantity received: {o.total_quantity}")
    click.echo(f"  Quantity rejected: {o.total_rejected}")
    click.echo(f"  Suppliers:         {o.unique_suppliers}")
    click.echo(f"  First receipt:     {o.first_receipt_date or '-'}")
    click.echo(f"  Last receipt:      {o.last_receipt_date or '-'}\n")


# --------------------------------------------------------------------
# report command
# --------------------------------------------------------------------

@cli.command()
@click.option("--format", "fmt", default="csv", type=click.Choice(["csv", "xml"]))
@click.option("--start", "start_date", default=None, help="From date (YYYY-MM-DD)")
@click.option("--end", "end_date", default=None, help="Until date (YYYY-MM-DD, inclusive)")
@click.option("--supplier", "supplier_id", default=None, type=int, help="Supplier id")
@click.option("--request", "request_id", default=None, type=int, help="Request id")
@click.option("--output", "-o", default=None, type=click.Path(), help="Output file")
@click.pass_context
def report(
    ctx: click.Context,
    fmt: str,
    start_date: str | None,
    end_date: str | None,
    supplier_id: int | None,
    request_id: int | None,
    output: str | None,
) -> None:
    """Export a receipts report as CSV or XML."""
    from datetime import datetime
    from receiving.report import build_report, render_report

    config: Config = ctx.obj["config"]
    ledger = _ledger(config)
    try:
        data = build_report(
            ledger.db,
            start_date=start_date,
            end_date=end_date,
            supplier_id=supplier_id,
            request_id=request_id,
        )
        content = render_report(data, fmt, template_file=config.report_template_path)
    except ReceivingError as exc:
        _fail(exc)
        return

    if output:
        out_path = Path(output)
    else:
        out_path = config.export_dir / f"receipts_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{fmt}"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(content, encoding="utf-8")

    summary = data["summary"]
    click.echo(f"  {summary['total_receipts']} receipts, {summary['total_received']} units received")
    click.echo(f"  Report written to: {out_path}")


# --------------------------------------------------------------------
# serve command
# --------------------------------------------------------------------

@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Port")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the receiving HTTP API."""
    import uvicorn
    from api import app as api_app

    api_app._config = ctx.obj["config"]
    click.echo(f"  Database:  {api_app._config.db_path}")
    uvicorn.run(api_app.app, host=host, port=port)


if __name__ == "__main__":
    cli()
