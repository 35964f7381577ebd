"""
Receiving API, FastAPI backend.

JSON keys are lower-camelCase.  Authentication happens upstream; the
authenticated user reaches this service as the X-User-Id / X-User-Role
headers and is passed explicitly into every operation.

Endpoints
---------
  GET    /api/health                                     → liveness check
  POST   /api/requests                                   → submit a request with items
  GET    /api/requests/{id}                              → request with its items
  PATCH  /api/requests/{id}/status                       → lifecycle transition (admin)
  POST   /api/requests/{id}/items                        → add item to a pending request
  PATCH  /api/requests/{id}/items/{itemId}/review        → item review status (admin)
  PATCH  /api/requests/{id}/items/{itemId}/quantity      → edit ordered quantity
  DELETE /api/requests/{id}/items/{itemId}               → delete item (no receipts only)
  POST   /api/requests/{id}/items/{itemId}/receipts      → record a receipt (admin)
  GET    /api/requests/{id}/items/{itemId}/receipts      → receipts of an item, oldest first
  GET    /api/items/{itemId}/fulfillment                 → fulfillment of one item
  GET    /api/requests/{id}/receipts/status              → per-item status + summary
  GET    /api/requests/{id}/receipts/summary             → receipt totals for a request
  GET    /api/requests/{id}/audit                        → audit log of a request
  GET    /api/reports/receipts                           → receipts report (csv | xml, admin)
"""
import json
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response

from config import Config
from models.request import Actor
from receiving.database import Database
from receiving.errors import (
    AuthorizationError, ConflictError, NotFoundError, ReceivingError, ValidationError,
)
from receiving.ledger import ReceiptLedger
from receiving.policy import CONDITION_ROLE, ROLE_ADMIN, can_view_request
from receiving.report import build_report, render_report
from receiving.validator import ReceiptValidator
from .models import ItemCreate, ItemReview, QuantityUpdate, RequestCreate, StatusUpdate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Ledger (lazy: opened on first request so importing the app has no side
# effects on disk)
# ---------------------------------------------------------------------------
_config: Optional[Config] = None
_ledger: Optional[ReceiptLedger] = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config()
    return _config


def build_ledger(config: Config) -> ReceiptLedger:
    config.ensure_output_dir()
    return ReceiptLedger(
        Database(config.db_path),
        validator=ReceiptValidator(warn_on_over_delivery=config.over_delivery_warning),
        summary_approved_only=config.summary_approved_only,
    )


def get_ledger() -> ReceiptLedger:
    global _ledger
    if _ledger is None:
        _ledger = build_ledger(get_config())
    return _ledger


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Requisition Receiving", docs_url=None, redoc_url=None)


_ERROR_STATUS = {
    ValidationError:    400,
    AuthorizationError: 403,
    NotFoundError:      404,
    ConflictError:      409,
}


@app.exception_handler(ReceivingError)
async def receiving_error_handler(request: Request, exc: ReceivingError):
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 400
    )
    logger.info(
        "%s %s -> %d %s: %s",
        request.method, request.url.path, status_code, type(exc).__name__, exc.message,
    )
    content: dict[str, Any] = {"error": exc.message, "type": type(exc).__name__}
    if isinstance(exc, ValidationError):
        content["field"] = exc.field
    if isinstance(exc, AuthorizationError) and exc.condition:
        content["condition"] = exc.condition
    return JSONResponse(status_code=status_code, content=content)


def _actor(user_id: Optional[str], role: Optional[str]) -> Actor:
    if not user_id or not role:
        raise HTTPException(401, "Missing X-User-Id / X-User-Role headers")
    return Actor(id=user_id, role=role)


def _require_admin(actor: Actor) -> None:
    if actor.role != ROLE_ADMIN:
        raise AuthorizationError("Access restricted to administrators", condition=CONDITION_ROLE)


def _dump(model) -> dict:
    return model.model_dump(by_alias=True)


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    config = get_config()
    return {
        "status":    "ok",
        "db_path":   str(config.db_path),
        "db_exists": config.db_path.exists(),
    }


# ── Requests (lifecycle) ─────────────────────────────────────────────────────

@app.post("/api/requests", status_code=201)
def create_request(
    body: RequestCreate,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    request = get_ledger().lifecycle.create_request(
        actor,
        [item.model_dump() for item in body.items],
        observations=body.observations,
    )
    return _dump(request)


@app.get("/api/requests/{request_id}")
def get_request(
    request_id: int,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    request = get_ledger().lifecycle.get_request(request_id)
    if not can_view_request(actor, request.requester_id):
        raise AuthorizationError("Access denied", condition=CONDITION_ROLE)
    return _dump(request)


@app.patch("/api/requests/{request_id}/status")
def update_request_status(
    request_id: int,
    body: StatusUpdate,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    request = get_ledger().lifecycle.transition(request_id, body.status, actor, notes=body.notes)
    return _dump(request)


@app.post("/api/requests/{request_id}/items", status_code=201)
def add_item(
    request_id: int,
    body: ItemCreate,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    item = get_ledger().lifecycle.add_item(
        request_id, actor, body.product_name, body.quantity, body.deadline,
    )
    return _dump(item)


@app.patch("/api/requests/{request_id}/items/{item_id}/review")
def review_item(
    request_id: int,
    item_id: int,
    body: ItemReview,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    lifecycle = get_ledger().lifecycle
    lifecycle.get_item(item_id, request_id=request_id)
    item = lifecycle.review_item(item_id, body.status, actor, admin_notes=body.admin_notes)
    return _dump(item)


@app.patch("/api/requests/{request_id}/items/{item_id}/quantity")
def update_item_quantity(
    request_id: int,
    item_id: int,
    body: QuantityUpdate,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    lifecycle = get_ledger().lifecycle
    lifecycle.get_item(item_id, request_id=request_id)
    item = lifecycle.update_item_quantity(item_id, body.quantity, actor)
    return _dump(item)


@app.delete("/api/requests/{request_id}/items/{item_id}")
def delete_item(
    request_id: int,
    item_id: int,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    lifecycle = get_ledger().lifecycle
    lifecycle.get_item(item_id, request_id=request_id)
    lifecycle.delete_item(item_id, actor)
    return {"itemId": item_id, "deleted": True}


# ── Receiving ────────────────────────────────────────────────────────────────

@app.post("/api/requests/{request_id}/items/{item_id}/receipts", status_code=201)
def record_receipt(
    request_id: int,
    item_id: int,
    payload: dict,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    """
    Record a delivery against an item.

    The raw body is handed to the ledger so that type errors are reported
    the same way as range errors: 400 with the offending field name.
    """
    actor = _actor(x_user_id, x_user_role)
    result = get_ledger().record_receipt(request_id, item_id, payload, actor)
    return _dump(result)


@app.get("/api/requests/{request_id}/items/{item_id}/receipts")
def list_receipts(
    request_id: int,
    item_id: int,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    receipts = get_ledger().list_receipts(request_id, item_id, actor=actor)
    return [_dump(r) for r in receipts]


@app.get("/api/items/{item_id}/fulfillment")
def get_item_fulfillment(
    item_id: int,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    ledger = get_ledger()
    item = ledger.lifecycle.get_item(item_id)
    request = ledger.lifecycle.get_request(item.request_id)
    if not can_view_request(actor, request.requester_id):
        raise AuthorizationError("Access denied", condition=CONDITION_ROLE)
    return _dump(ledger.get_item_fulfillment(item_id))


@app.get("/api/requests/{request_id}/receipts/status")
def get_receiving_status(
    request_id: int,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    return _dump(get_ledger().get_request_fulfillment_summary(request_id, actor=actor))


@app.get("/api/requests/{request_id}/receipts/summary")
def get_receipts_overview(
    request_id: int,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    return _dump(get_ledger().get_receipts_overview(request_id, actor=actor))


@app.get("/api/requests/{request_id}/audit")
def get_audit_log(
    request_id: int,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    ledger = get_ledger()
    request = ledger.lifecycle.get_request(request_id)
    if not can_view_request(actor, request.requester_id):
        raise AuthorizationError("Access denied", condition=CONDITION_ROLE)

    entries = ledger.db.get_audit_log(request_id)
    for entry in entries:
        if entry.get("detail"):
            entry["detail"] = json.loads(entry["detail"])
    return entries


# ── Reports ──────────────────────────────────────────────────────────────────

@app.get("/api/reports/receipts")
def receipts_report(
    format: str = Query(default="csv"),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    supplier_id: Optional[int] = Query(default=None, alias="supplierId"),
    request_id: Optional[int] = Query(default=None, alias="requestId"),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    """Receipts report as a CSV or XML download (administrators only)."""
    actor = _actor(x_user_id, x_user_role)
    _require_admin(actor)

    config = get_config()
    report = build_report(
        get_ledger().db,
        start_date=start_date or None,
        end_date=end_date or None,
        supplier_id=supplier_id,
        request_id=request_id,
    )
    content = render_report(report, format, template_file=config.report_template_path)

    media_type = "text/csv" if format == "csv" else "application/xml"
    filename = f"receipts_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{format}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
