from __future__ import annotations

"""Pydantic request schemas for the public API.

Only the HTTP envelope is validated here; operation payloads are checked by
runtime.tx_schema during admission.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class SubmitTxRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tx_type: str = Field(..., min_length=1, description="Operation, e.g. TRANSFER")
    signer: str = Field(..., min_length=1, description="Account id derived from pubkey")
    nonce: int = Field(..., ge=1, description="Signer's last consumed nonce + 1")
    payload: Dict[str, Any] = Field(default_factory=dict)
    pubkey: str = Field(..., min_length=1, description="Ed25519 public key, hex or base64")
    sig: str = Field(..., min_length=1, description="Signature over the canonical tx message")
