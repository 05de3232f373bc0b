"""
Service-account credential decoding.

Hosting dashboards mangle multi-line JSON, so the credential may be stored
either as the raw JSON document or as its base64 encoding.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional


@dataclass(frozen=True)
class CredentialDecodeResult:
    """Outcome of decoding a credential blob."""
    
    ok: bool
    info: Optional[Dict[str, Any]] = None
    source: Optional[Literal["raw", "base64"]] = None
    error: Optional[str] = None


def _parse_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def decode_service_account(blob: str) -> CredentialDecodeResult:
    """
    Decode a service-account credential.
    
    Tries the blob as raw JSON first, then as base64-encoded JSON. Never
    raises; check `ok` on the result.
    """
    if not blob or not blob.strip():
        return CredentialDecodeResult(ok=False, error="credential is empty")
    
    info = _parse_object(blob)
    if info is not None:
        return CredentialDecodeResult(ok=True, info=info, source="raw")
    
    try:
        decoded = base64.b64decode(blob.strip(), validate=False).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return CredentialDecodeResult(
            ok=False, error="credential is neither JSON nor base64-encoded JSON"
        )
    
    info = _parse_object(decoded)
    if info is not None:
        return CredentialDecodeResult(ok=True, info=info, source="base64")
    
    return CredentialDecodeResult(
        ok=False, error="credential is neither JSON nor base64-encoded JSON"
    )
