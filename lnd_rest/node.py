"""One accessor per LND REST endpoint.

Each accessor goes through the shared ``LndClient.execute()`` and returns an
``LndResult``: transport failures and embedded ``error`` fields become failed
results instead of exceptions, so callers decide how to present them.
"""

import base64
import binascii
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from .client import LndClient, lnd_error
from .errors import LndError
from .qr import QrDecoder, QrEncoder

logger = logging.getLogger(__name__)

ALIAS_UNAVAILABLE = "Alias Unavailable"


@dataclass
class LndResult:
    """Outcome of an accessor call.

    ``str()`` gives the value on success and the error message on failure,
    e.g. ``"Error: wallet locked"``.
    """

    success: bool = True
    value: Any = None
    error: dict[str, Any] | None = None

    @classmethod
    def ok(cls, value: Any) -> "LndResult":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, message: str, value: Any = None) -> "LndResult":
        return cls(success=False, value=value, error={"message": message})

    @property
    def message(self) -> str | None:
        return (self.error or {}).get("message")

    def __str__(self) -> str:
        if self.success:
            return str(self.value)
        return self.message or ""


async def _lnd_request(coro: Callable[[], Awaitable[Any]]) -> LndResult | Any:
    """Run a client call, turning ``LndError`` into a failed ``LndResult``."""
    try:
        return await coro()
    except LndError as e:
        return LndResult.failed(str(e))


def _int(value: Any) -> int:
    # int64 fields arrive as JSON strings
    return int(value or 0)


class LndNode:
    """Typed accessors over an ``LndClient``."""

    def __init__(
        self,
        client: LndClient,
        encoder: QrEncoder | None = None,
        decoder: QrDecoder | None = None,
    ) -> None:
        self._client = client
        self._encoder = encoder or QrEncoder()
        self._decoder = decoder

    @property
    def client(self) -> LndClient:
        return self._client

    async def _fetch(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        method: str | None = None,
        allow_empty: bool = False,
    ) -> LndResult | Any:
        data = await _lnd_request(
            lambda: self._client.execute(
                path, params, method=method, allow_empty=allow_empty
            )
        )
        if isinstance(data, LndResult):
            return data
        if error := lnd_error(data):
            logger.debug("LND %s returned error: %s", path, error)
            return LndResult.failed(f"Error: {error}")
        return data

    async def _extract(
        self,
        path: str,
        extract: Callable[[Any], Any],
        **kwargs: Any,
    ) -> LndResult:
        data = await self._fetch(path, **kwargs)
        if isinstance(data, LndResult):
            return data
        try:
            return LndResult.ok(extract(data))
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("LND %s returned an unexpected payload: %s", path, e)
            return LndResult.failed(f"Error: unexpected response from {path}")

    # ------------------------------------------------------------------
    # Node info
    # ------------------------------------------------------------------

    async def is_reachable(self) -> bool:
        return await self._client.probe()

    async def node_status(self) -> LndResult:
        """``"Online"`` if ``getinfo`` answers cleanly."""
        return await self._extract("getinfo", lambda info: "Online")

    async def node_version(self) -> LndResult:
        """Version without the commit suffix, e.g. ``"0.17.4-beta"``."""
        return await self._extract(
            "getinfo", lambda info: (info.get("version") or "").split(" ")[0]
        )

    async def node_alias(self) -> LndResult:
        return await self._extract("getinfo", lambda info: info.get("alias"))

    async def node_pubkey(self) -> LndResult:
        return await self._extract("getinfo", lambda info: info.get("identity_pubkey"))

    async def node_synced(self) -> LndResult:
        return await self._extract(
            "getinfo", lambda info: bool(info.get("synced_to_chain", False))
        )

    async def block_height(self) -> LndResult:
        return await self._extract("getinfo", lambda info: _int(info.get("block_height")))

    async def num_peers(self) -> LndResult:
        return await self._extract("getinfo", lambda info: _int(info.get("num_peers")))

    async def num_active_channels(self) -> LndResult:
        return await self._extract(
            "getinfo", lambda info: _int(info.get("num_active_channels"))
        )

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def channel_balance(self) -> LndResult:
        """Total satoshis across all channels."""
        return await self._extract("balance/channels", lambda bal: _int(bal.get("balance")))

    async def blockchain_balance(self) -> LndResult:
        return await self._extract(
            "balance/blockchain", lambda bal: _int(bal.get("total_balance"))
        )

    async def confirmed_balance(self) -> LndResult:
        return await self._extract(
            "balance/blockchain", lambda bal: _int(bal.get("confirmed_balance"))
        )

    async def unconfirmed_balance(self) -> LndResult:
        return await self._extract(
            "balance/blockchain", lambda bal: _int(bal.get("unconfirmed_balance"))
        )

    # ------------------------------------------------------------------
    # Invoices and payments
    # ------------------------------------------------------------------

    async def new_invoice(
        self, amount: int, memo: str = "", include_qr: bool = False
    ) -> LndResult:
        """Create an invoice for ``amount`` satoshis.

        The value carries ``payment_request``, ``r_hash``, ``amount`` and
        ``memo``, plus a ``qr`` data URI of the payment request when
        ``include_qr`` is set.
        """
        data = await self._fetch("invoices", {"memo": memo, "value": amount})
        if isinstance(data, LndResult):
            return data

        invoice = {
            "payment_request": data.get("payment_request", ""),
            "r_hash": data.get("r_hash", ""),
            "amount": amount,
            "memo": memo,
        }
        if include_qr:
            invoice["qr"] = self._encoder.encode_data_uri(invoice["payment_request"])
        return LndResult.ok(invoice)

    async def invoices(self, pending_only: bool = False, reverse: bool = False) -> LndResult:
        query: dict[str, Any] = {}
        if pending_only:
            query["pending_only"] = "true"
        if reverse:
            query["reversed"] = "true"
        path = f"invoices?{httpx.QueryParams(query)}" if query else "invoices"
        return await self._extract(path, lambda data: data.get("invoices", []))

    async def invoice_is_paid(self, payment_hash: str) -> LndResult:
        """Whether the invoice with base64 ``payment_hash`` is settled.

        ``value`` is False on every failure, so ``bool(result.value)`` is safe.
        """
        try:
            r_hash = base64.b64decode(payment_hash, validate=True).hex()
        except (binascii.Error, ValueError):
            return LndResult.failed(f"Invalid payment hash {payment_hash!r}", value=False)

        data = await self._fetch(f"invoice/{r_hash}")
        if isinstance(data, LndResult):
            data.value = False
            return data
        return LndResult.ok(bool(data.get("settled")) or data.get("state") == "SETTLED")

    async def decode_invoice(self, payment_request: str) -> LndResult:
        return await self._extract(f"payreq/{payment_request}", lambda data: data)

    async def pay_invoice(
        self, payment_request: str, fee_limit_sats: int | None = None
    ) -> LndResult:
        """Pay a BOLT11 invoice synchronously.

        A ``payment_error`` in the response is a failure even though the
        request itself succeeded.
        """
        body: dict[str, Any] = {"payment_request": payment_request}
        if fee_limit_sats is not None:
            body["fee_limit"] = {"fixed": int(fee_limit_sats)}

        data = await self._fetch("channels/transactions", body)
        if isinstance(data, LndResult):
            return data
        if payment_error := data.get("payment_error"):
            return LndResult.failed(f"Payment failed: {payment_error}", value=data)
        return LndResult.ok(data)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    async def open_channels(self) -> LndResult:
        return await self._extract("channels", lambda data: data.get("channels", []))

    async def closed_channels(self) -> LndResult:
        return await self._extract("channels/closed", lambda data: data.get("channels", []))

    async def pending_channels(self) -> LndResult:
        return await self._extract("channels/pending", lambda data: data)

    async def open_channel(self, amount: int, remote_pubkey: str) -> LndResult:
        body = {"node_pubkey_string": remote_pubkey, "local_funding_amount": amount}
        return await self._extract("channels", lambda data: data, params=body)

    # ------------------------------------------------------------------
    # Peers
    # ------------------------------------------------------------------

    async def peers(self) -> LndResult:
        return await self._extract("peers", lambda data: data.get("peers", []))

    async def connect_peer(self, pubkey: str, host: str) -> LndResult:
        body = {"addr": {"pubkey": pubkey, "host": host}}
        return await self._extract(
            "peers", lambda data: data, params=body, allow_empty=True
        )

    async def disconnect_peer(self, pubkey: str) -> LndResult:
        return await self._extract(
            f"peers/{pubkey}", lambda data: data, method="DELETE", allow_empty=True
        )

    async def peer_alias(self, pubkey: str) -> LndResult:
        """Alias of any node in the graph, or ``"Alias Unavailable"``."""
        data = await _lnd_request(lambda: self._client.execute(f"graph/node/{pubkey}"))
        if isinstance(data, LndResult):
            return data
        if lnd_error(data):
            return LndResult.ok(ALIAS_UNAVAILABLE)
        alias = (data.get("node") or {}).get("alias")
        return LndResult.ok(alias or ALIAS_UNAVAILABLE)

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------

    async def new_address(self, address_type: int = 1) -> LndResult:
        """Generate an on-chain address. Type 1 is nested SegWit (np2wkh)."""
        return await self._extract(
            f"newaddress?type={address_type}", lambda data: data.get("address")
        )

    async def transactions(self) -> LndResult:
        """On-chain wallet transactions, newest first."""
        return await self._extract(
            "transactions",
            lambda data: list(reversed(data.get("transactions") or [])),
        )

    async def unlock_wallet(self, wallet_password: str) -> LndResult:
        # bytes fields travel base64-encoded through the REST gateway
        password = base64.b64encode(wallet_password.encode("utf-8")).decode("ascii")
        return await self._extract(
            "unlockwallet",
            lambda data: data,
            params={"wallet_password": password},
            allow_empty=True,
        )

    # ------------------------------------------------------------------
    # Network graph
    # ------------------------------------------------------------------

    async def network_info(self) -> LndResult:
        return await self._extract("graph/info", lambda data: data)

    async def network_graph(self) -> LndResult:
        """The full channel graph. Slow on mainnet."""
        return await self._extract("graph", lambda data: data)

    # ------------------------------------------------------------------
    # QR codes
    # ------------------------------------------------------------------

    def draw_qr(self, data: str) -> LndResult:
        """``data`` rendered as a PNG QR code ``data:`` URI."""
        return LndResult.ok(self._encoder.encode_data_uri(data))

    def decode_qr(self, image: bytes) -> LndResult:
        if self._decoder is None:
            return LndResult.failed("QR decoding is not configured")
        try:
            return LndResult.ok(self._decoder.decode(image))
        except ValueError as e:
            return LndResult.failed(f"Could not decode QR image: {e}")
