"""LND REST API client with lazy connection, TLS+macaroon auth and a reachability cache."""

import dataclasses
import enum
import json
import logging
import os
import ssl
from typing import Any

import httpx

from .config import LndConfig, coerce_seconds, load_macaroon, parse_host
from .errors import CertificateNotFound, CredentialEmpty, HostUnreachable, LndError

logger = logging.getLogger(__name__)

MACAROON_HEADER = "Grpc-Metadata-macaroon"
TRACE_LOGGER = "lnd_rest.trace"
REDACTED_FIELDS = frozenset({"wallet_password"})


class Reachability(enum.Enum):
    UNKNOWN = "unknown"
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


class LndClient:
    """Thin async client for the LND REST API.

    Holds a single httpx.AsyncClient (lazy-initialized on first call, rebuilt
    when the TLS material changes). Connection settings live in an immutable
    ``LndConfig``; the setters below swap in a modified copy.

    Once ``probe()`` has seen the node fail, every later ``execute()`` is
    refused without touching the network until ``force_disable_cache`` is
    set. Nothing else clears that state.
    """

    def __init__(self, host: str = "", config: LndConfig | None = None) -> None:
        self._config = config or LndConfig()
        self._reachability = Reachability.UNKNOWN
        self._client: httpx.AsyncClient | None = None
        self._client_tls: tuple[str | None, str | None] | None = None
        self._trace_handler: logging.FileHandler | None = None
        self._trace_logger = logging.getLogger(f"{TRACE_LOGGER}.{id(self)}")
        if host:
            self.set_host(host)

    async def __aenter__(self) -> "LndClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> LndConfig:
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def reachability(self) -> Reachability:
        return self._reachability

    @property
    def force_disable_cache(self) -> bool:
        return self._config.force_disable_cache

    @force_disable_cache.setter
    def force_disable_cache(self, value: bool) -> None:
        self._replace(force_disable_cache=bool(value))

    def _replace(self, **changes: Any) -> None:
        self._config = dataclasses.replace(self._config, **changes)

    def set_host(self, host: str) -> None:
        """Point the client at ``host[:port]``.

        Raises:
            InvalidHostFormat: if ``host`` is not a hostname or IPv4 address
                with an optional port
        """
        self._replace(base_url=parse_host(host))

    def set_connection_timeout(self, seconds: Any) -> None:
        """Set the connect timeout. Non-numeric or negative input is ignored."""
        value = coerce_seconds(seconds)
        if value is not None:
            self._replace(connect_timeout=value)

    def set_request_timeout(self, seconds: Any) -> None:
        """Set the overall request deadline. Invalid input is ignored."""
        value = coerce_seconds(seconds)
        if value is not None:
            self._replace(request_timeout=value)

    def load_macaroon_from_file(self, path: str) -> None:
        """Load a binary macaroon file and keep its uppercase hex encoding.

        Raises:
            CredentialNotFound: if ``path`` does not exist
        """
        self._replace(macaroon_hex=load_macaroon(path))

    def load_macaroon_from_data(self, data: bytes | str) -> None:
        """Use an in-memory macaroon.

        Bytes are hex-encoded; a str is taken to be hex already.

        Raises:
            CredentialEmpty: if ``data`` is empty
        """
        if not data:
            raise CredentialEmpty()
        if isinstance(data, (bytes, bytearray)):
            macaroon_hex = bytes(data).hex()
        else:
            macaroon_hex = str(data)
        self._replace(macaroon_hex=macaroon_hex.upper())

    def load_tls_cert(self, path: str) -> None:
        """Trust the node's TLS certificate and turn on verification.

        Raises:
            CertificateNotFound: if ``path`` does not exist
        """
        if not os.path.exists(path):
            raise CertificateNotFound(path)
        self._replace(tls_cert=path)

    def set_cacert_file(self, path: str) -> bool:
        """Use ``path`` as the CA bundle. Returns False if it does not exist."""
        if not os.path.exists(path):
            return False
        self._replace(ca_bundle=path)
        return True

    def set_trace_log_file(self, path: str | None) -> None:
        """Append a full request/response trace to ``path``; None turns it off."""
        self._replace(trace_log_file=path)

    # ------------------------------------------------------------------
    # Reachability cache
    # ------------------------------------------------------------------

    def is_blocked(self) -> bool:
        """True when calls must be refused because the node is known to be down."""
        return (
            not self._config.force_disable_cache
            and self._reachability is Reachability.UNREACHABLE
        )

    async def probe(self) -> bool:
        """Check that the node answers ``getinfo`` and record the outcome."""
        if self.is_blocked():
            return False

        try:
            info = await self.execute("getinfo")
        except LndError as e:
            self._mark_unreachable(str(e))
            return False

        if error := lnd_error(info):
            self._mark_unreachable(error)
            return False

        if self._reachability is not Reachability.REACHABLE:
            logger.info("LND node at %s is reachable", self._config.base_url)
        self._reachability = Reachability.REACHABLE
        return True

    def _mark_unreachable(self, reason: str) -> None:
        logger.warning(
            "LND node at %s marked unreachable: %s", self._config.base_url, reason
        )
        self._reachability = Reachability.UNREACHABLE

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _tls_key(self) -> tuple[str | None, str | None]:
        return (self._config.tls_cert, self._config.ca_bundle)

    def _ssl_verify(self) -> ssl.SSLContext | bool:
        if not self._config.verify_tls:
            return False
        try:
            context = ssl.create_default_context(cafile=self._config.ca_bundle)
            context.load_verify_locations(cafile=self._config.tls_cert)
        except (ssl.SSLError, OSError) as e:
            logger.error("LND TLS setup failed: %s", e)
            raise HostUnreachable(f"unusable TLS material: {e}") from e
        return context

    def _event_hooks(self) -> dict[str, list[Any]]:
        return {"request": [self._trace_request], "response": [self._trace_response]}

    async def _ensure_client(self) -> httpx.AsyncClient:
        self._sync_trace_handler()
        if self._client is not None and self._client_tls != self._tls_key():
            await self._client.aclose()
            self._client = None
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=self._ssl_verify(),
                event_hooks=self._event_hooks(),
            )
            self._client_tls = self._tls_key()
        return self._client

    async def execute(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        method: str | None = None,
        allow_empty: bool = False,
    ) -> Any:
        """Send a request to ``base_url + path`` and return the decoded JSON.

        A non-empty ``params`` mapping is sent as the JSON body and makes the
        request a POST unless ``method`` says otherwise. ``allow_empty`` accepts
        a bare ``{}`` for endpoints that answer success that way.

        Raises:
            HostUnreachable: if the node is marked unreachable, cannot be
                reached, or answers with an empty or non-JSON body
        """
        if self.is_blocked():
            logger.debug("LND %s skipped: node marked unreachable", path)
            raise HostUnreachable("node previously marked unreachable")

        config = self._config
        if not config.base_url:
            raise HostUnreachable("no host configured")

        verb = (method or ("POST" if params else "GET")).upper()
        kwargs: dict[str, Any] = {
            "headers": {
                MACAROON_HEADER: config.macaroon_hex,
                "Content-Type": "application/json",
            },
            "timeout": httpx.Timeout(
                config.request_timeout, connect=config.connect_timeout
            ),
        }
        if params:
            kwargs["json"] = params

        logger.debug("LND %s %s", verb, path)

        client = await self._ensure_client()
        try:
            response = await client.request(verb, config.base_url + path, **kwargs)
        except httpx.RequestError as e:
            logger.error("LND unreachable: %s %s -> %s", verb, path, e)
            raise HostUnreachable(str(e)) from e

        if not response.is_error:
            logger.debug("LND response: %s %d", path, response.status_code)
            return decode_response(response, allow_empty=allow_empty)

        logger.error("LND error: %s %s -> %d", verb, path, response.status_code)
        data = decode_response(response, allow_empty=allow_empty)
        if lnd_error(data) is None:
            # error statuses always carry an error the accessors can see
            status = f"HTTP {response.status_code} {response.reason_phrase}".strip()
            data = {**data, "error": status} if isinstance(data, dict) else {"error": status}
        return data

    async def close(self) -> None:
        """Close the underlying HTTP client if it was created."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._client_tls = None
        self._detach_trace_handler()

    # ------------------------------------------------------------------
    # Trace log
    # ------------------------------------------------------------------

    def _sync_trace_handler(self) -> None:
        path = self._config.trace_log_file
        if self._trace_handler is not None:
            if path and self._trace_handler.baseFilename == os.path.abspath(path):
                return
            self._detach_trace_handler()
        if path:
            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
            self._trace_logger.addHandler(handler)
            self._trace_logger.setLevel(logging.DEBUG)
            self._trace_logger.propagate = False
            self._trace_handler = handler

    def _detach_trace_handler(self) -> None:
        if self._trace_handler is not None:
            self._trace_logger.removeHandler(self._trace_handler)
            self._trace_handler.close()
            self._trace_handler = None

    async def _trace_request(self, request: httpx.Request) -> None:
        if self._trace_handler is None:
            return
        self._trace_logger.debug(
            "> %s %s\n%s\n%s",
            request.method,
            request.url,
            _format_headers(request.headers),
            _format_body(request.content),
        )

    async def _trace_response(self, response: httpx.Response) -> None:
        if self._trace_handler is None:
            return
        await response.aread()
        self._trace_logger.debug(
            "< %s %d %s\n%s\n%s",
            response.http_version,
            response.status_code,
            response.reason_phrase,
            _format_headers(response.headers),
            response.text,
        )


def _format_headers(headers: httpx.Headers) -> str:
    lines = []
    for name, value in headers.items():
        if name.lower() == MACAROON_HEADER.lower():
            value = "<redacted>"
        lines.append(f"{name}: {value}")
    return "\n".join(lines)


def _format_body(content: bytes) -> str:
    text = content.decode("utf-8", errors="replace")
    try:
        body = json.loads(text)
    except ValueError:
        return text
    if not isinstance(body, dict) or not REDACTED_FIELDS & body.keys():
        return text
    return json.dumps(
        {k: "<redacted>" if k in REDACTED_FIELDS else v for k, v in body.items()}
    )


def decode_response(response: httpx.Response, allow_empty: bool = False) -> Any:
    """Decode a response body, treating empty or undecodable JSON as unreachable."""
    try:
        data = response.json()
    except ValueError as e:
        raise HostUnreachable("response body is not JSON") from e
    if not data and not (allow_empty and data == {}):
        raise HostUnreachable("empty response")
    return data


def lnd_error(payload: Any) -> str | None:
    """Return the embedded error of an LND response, if it carries one.

    Older gateways put it under ``error``; current ones send a gRPC status
    ``{"code", "message", "details"}``.
    """
    if not isinstance(payload, dict):
        return None
    if payload.get("error"):
        return str(payload["error"])
    if payload.get("code") and payload.get("message"):
        return str(payload["message"])
    return None
