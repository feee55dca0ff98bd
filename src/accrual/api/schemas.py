"""Pydantic request schemas for the HTTP API.

Only HTTP input validation lives here; the canonical envelope shape and
its strict decoding live in accrual.bridge.codec.
"""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class RelayEnvelopeIn(BaseModel):
    version: int = Field(default=1, description="Envelope schema version")
    source_domain: str = Field(..., description="Domain the transfer was exported from")
    dest_domain: str = Field(..., description="Domain expected to import it (this node)")
    source_adapter: str = Field(..., description="Source adapter Ed25519 public key (hex)")
    nonce: int = Field(..., ge=0, description="Per (source, dest) sequence number")
    sender: str
    receiver: str
    # Decimal string preferred: amounts can exceed 2**53.
    amount: Union[int, str]
    payload_hex: str = Field(..., description="32-byte rate word, hex")
    remote_token: str = Field(..., description="Token id on this domain, as the source sees it")
    sig: Optional[str] = Field(default=None, description="Ed25519 signature over the envelope body (hex)")


class OutboxAckRequest(BaseModel):
    msg_ids: List[str] = Field(default_factory=list, description="Envelope ids the relay has taken custody of")
