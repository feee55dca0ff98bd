from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request, Response

from accrual.api.errors import ApiError
from accrual.api.schemas import OutboxAckRequest, RelayEnvelopeIn
from accrual.bridge.codec import WireDecodeError, envelope_from_json, envelope_to_json
from accrual.ledger.constants import PRECISION
from accrual.runtime.boot import Domain
from accrual.runtime.metrics import format_prometheus, metrics_enabled

Json = Dict[str, Any]

router = APIRouter()


def _domain(request: Request) -> Domain:
    d = getattr(request.app.state, "domain", None)
    if d is None:
        raise ApiError.internal("not_ready", "domain not attached to app.state", {})
    return d


@router.get("/health")
def health(request: Request) -> Json:
    d = getattr(request.app.state, "domain", None)
    return {"ok": True, "ready": d is not None, "domain_id": d.domain_id if d is not None else None}


@router.get("/ledger")
def ledger_info(request: Request) -> Json:
    d = _domain(request)
    return {
        "ok": True,
        "domain_id": d.domain_id,
        "token_id": d.config.token_id,
        "default_rate": str(d.ledger.current_default_rate()),
        "precision": str(PRECISION),
        "now": d.ledger.now(),
    }


@router.get("/accounts/{holder}")
def account_get(holder: str, request: Request) -> Json:
    d = _domain(request)
    with d.ledger.atomic():
        acct = d.ledger.account(holder)
        balance = d.ledger.balance_of(holder)
    return {
        "ok": True,
        "holder": holder,
        "balance": str(balance),
        "principal": str(acct.principal),
        "rate": str(acct.rate),
        "last_update": acct.last_update,
    }


@router.get("/bridge/domains")
def bridge_domains(request: Request) -> Json:
    d = _domain(request)
    return {
        "ok": True,
        "domain_id": d.domain_id,
        "adapter": d.endpoint.public_key,
        "remotes": [d.adapter.remote_domain(r).to_json() for r in d.adapter.supported_domains()],
    }


@router.get("/bridge/outbox")
def bridge_outbox(request: Request) -> Json:
    d = _domain(request)
    items = [dict(envelope_to_json(e), msg_id=e.msg_id) for e in d.endpoint.pending()]
    return {"ok": True, "count": len(items), "envelopes": items}


@router.post("/bridge/outbox/ack")
def bridge_outbox_ack(body: OutboxAckRequest, request: Request) -> Json:
    d = _domain(request)
    return {"ok": True, "acked": d.endpoint.ack(body.msg_ids)}


@router.post("/bridge/inbound")
def bridge_inbound(body: RelayEnvelopeIn, request: Request) -> Json:
    d = _domain(request)
    try:
        env = envelope_from_json(body.model_dump(exclude_none=True))
    except WireDecodeError as e:
        raise ApiError.bad_request("malformed_payload", str(e), {"wire_code": e.code})

    res = d.endpoint.deliver(env)
    return {"ok": True, "msg_id": res.msg_id, "status": res.status, "minted": str(res.minted)}


@router.get("/metrics")
def metrics() -> Response:
    """Prometheus-style metrics. Disabled unless ACCRUAL_METRICS_ENABLED=1."""
    if not metrics_enabled():
        return Response(status_code=404, content="not_found\n", media_type="text/plain")
    return Response(content=format_prometheus(), media_type="text/plain")
