"""Connection settings for an LND node and the helpers that build them."""

import math
import os
import re
from dataclasses import dataclass
from typing import Any

from .errors import CertificateNotFound, CredentialNotFound, InvalidHostFormat

API_VERSION = "v1"
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_REQUEST_TIMEOUT = 30.0

_LABEL = r"[a-z0-9](?:[a-z0-9-]*[a-z0-9])?"
_HOST_RE = re.compile(
    rf"^(?:(?:\d{{1,3}}\.){{3}}\d{{1,3}}|{_LABEL}(?:\.{_LABEL})*)(?::\d{{2,5}})?$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class LndConfig:
    """Everything a request needs to reach and authenticate against a node.

    Instances are immutable. ``LndClient`` setters swap in a modified copy
    so a request always sees one consistent configuration.
    """

    base_url: str = ""
    macaroon_hex: str = ""
    tls_cert: str | None = None
    ca_bundle: str | None = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    force_disable_cache: bool = False
    trace_log_file: str | None = None

    @property
    def verify_tls(self) -> bool:
        return self.tls_cert is not None


def parse_host(host: str, api_version: str = API_VERSION) -> str:
    """Validate ``host[:port]`` and return the REST base URL for it."""
    if not isinstance(host, str) or not _HOST_RE.match(host):
        raise InvalidHostFormat(str(host))
    return f"https://{host}/{api_version}/"


def coerce_seconds(value: Any) -> float | None:
    """Return ``value`` as non-negative seconds, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        try:
            seconds = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


def load_macaroon(path: str) -> str:
    """Read a binary macaroon file and return its uppercase hex encoding."""
    if not os.path.exists(path):
        raise CredentialNotFound(path)
    with open(path, "rb") as f:
        return f.read().hex().upper()


def config_from_mapping(config: dict[str, Any] | None = None) -> LndConfig:
    """Build an ``LndConfig`` from a mapping, falling back to LND_* env vars."""
    config = config or {}

    host = config.get("rest_host") or os.environ.get("LND_REST_HOST", "127.0.0.1")
    port = config.get("rest_port") or os.environ.get("LND_REST_PORT", "8080")
    base_url = parse_host(f"{host}:{port}")

    macaroon_path = config.get("macaroon_path") or os.environ.get("LND_MACAROON_PATH")
    if not macaroon_path:
        raise ValueError(
            "LND macaroon path is required (config: macaroon_path or env: LND_MACAROON_PATH)"
        )

    tls_cert = config.get("tls_cert") or os.environ.get("LND_TLS_CERT") or None
    if tls_cert is not None and not os.path.exists(tls_cert):
        raise CertificateNotFound(tls_cert)
    ca_bundle = config.get("ca_bundle") or os.environ.get("LND_CA_BUNDLE") or None
    if ca_bundle is not None and not os.path.exists(ca_bundle):
        raise CertificateNotFound(ca_bundle)

    connect_timeout = coerce_seconds(
        config.get("connect_timeout", os.environ.get("LND_CONNECT_TIMEOUT"))
    )
    request_timeout = coerce_seconds(
        config.get("request_timeout", os.environ.get("LND_REQUEST_TIMEOUT"))
    )

    return LndConfig(
        base_url=base_url,
        macaroon_hex=load_macaroon(macaroon_path),
        tls_cert=tls_cert,
        ca_bundle=ca_bundle,
        connect_timeout=(
            DEFAULT_CONNECT_TIMEOUT if connect_timeout is None else connect_timeout
        ),
        request_timeout=(
            DEFAULT_REQUEST_TIMEOUT if request_timeout is None else request_timeout
        ),
        force_disable_cache=bool(config.get("force_disable_cache", False)),
        trace_log_file=config.get("trace_log_file") or os.environ.get("LND_TRACE_LOG"),
    )
