"""LND REST API client -- thin wiring."""

from typing import Any

from .client import LndClient, Reachability
from .config import LndConfig, config_from_mapping, load_macaroon, parse_host
from .errors import (
    CertificateNotFound,
    CredentialEmpty,
    CredentialNotFound,
    HostUnreachable,
    InvalidHostFormat,
    LndError,
)
from .node import LndNode, LndResult
from .qr import QrDecoder, QrEncoder

__all__ = [
    "CertificateNotFound",
    "CredentialEmpty",
    "CredentialNotFound",
    "HostUnreachable",
    "InvalidHostFormat",
    "LndClient",
    "LndConfig",
    "LndError",
    "LndNode",
    "LndResult",
    "QrDecoder",
    "QrEncoder",
    "Reachability",
    "build_client",
    "config_from_mapping",
    "load_macaroon",
    "parse_host",
]


def build_client(config: dict[str, Any] | None = None) -> LndClient:
    """Create an ``LndClient`` from a config mapping and LND_* env vars."""
    return LndClient(config=config_from_mapping(config))
