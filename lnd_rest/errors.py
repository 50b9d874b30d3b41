"""Exception types raised by the LND REST client."""


class LndError(Exception):
    """Base class for every error raised by this package."""


class InvalidHostFormat(LndError, ValueError):
    """The host string is not ``hostname[:port]`` or ``ipv4[:port]``."""

    def __init__(self, host: str) -> None:
        super().__init__(f"Invalid host {host!r}. Use host:port syntax.")
        self.host = host


class CredentialNotFound(LndError, FileNotFoundError):
    """The macaroon file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Macaroon not found at {path}")
        self.path = path


class CredentialEmpty(LndError, ValueError):
    """Raw macaroon data was empty."""

    def __init__(self) -> None:
        super().__init__("Macaroon data is empty")


class CertificateNotFound(LndError, FileNotFoundError):
    """The TLS certificate file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"TLS certificate not found at {path}")
        self.path = path


class HostUnreachable(LndError):
    """The node could not be reached or returned an empty/undecodable body.

    Network failures, TLS failures and empty-but-valid responses all end up
    here.
    """

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("Host Unreachable")
        self.detail = detail
