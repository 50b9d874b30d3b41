"""Tests for connection settings: host parsing, timeouts, credentials, TLS material."""

import dataclasses

import pytest

from lnd_rest import build_client
from lnd_rest.client import LndClient
from lnd_rest.config import (
    DEFAULT_CONNECT_TIMEOUT,
    LndConfig,
    coerce_seconds,
    config_from_mapping,
    load_macaroon,
    parse_host,
)
from lnd_rest.errors import (
    CertificateNotFound,
    CredentialEmpty,
    CredentialNotFound,
    InvalidHostFormat,
    LndError,
)

ENV_VARS = (
    "LND_REST_HOST",
    "LND_REST_PORT",
    "LND_TLS_CERT",
    "LND_MACAROON_PATH",
    "LND_CA_BUNDLE",
    "LND_CONNECT_TIMEOUT",
    "LND_REQUEST_TIMEOUT",
    "LND_TRACE_LOG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def macaroon_file(tmp_path):
    path = tmp_path / "admin.macaroon"
    path.write_bytes(b"\x02\x01\x03lnd\xde\xad")
    return path


# ---------------------------------------------------------------------------
# Host parsing
# ---------------------------------------------------------------------------


def test_hostname_with_port_builds_base_url():
    assert parse_host("node.example.com:8080") == "https://node.example.com:8080/v1/"


def test_ipv4_with_port_is_accepted():
    assert parse_host("10.0.0.5:10009") == "https://10.0.0.5:10009/v1/"


def test_host_without_port_is_accepted():
    assert parse_host("Node.Example.COM") == "https://Node.Example.COM/v1/"


@pytest.mark.parametrize(
    "host",
    ["not a host", "", "node.example.com:8", "node.example.com:123456", "https://node:8080", "-bad.example.com"],
)
def test_malformed_host_raises(host):
    with pytest.raises(InvalidHostFormat):
        parse_host(host)


def test_invalid_host_is_a_value_error():
    with pytest.raises(ValueError):
        parse_host("not a host")


def test_set_host_updates_base_url():
    client = LndClient()
    client.set_host("node.example.com:8080")
    assert client.base_url == "https://node.example.com:8080/v1/"


def test_set_host_failure_keeps_previous_url():
    client = LndClient("node.example.com:8080")
    with pytest.raises(InvalidHostFormat):
        client.set_host("not a host")
    assert client.base_url == "https://node.example.com:8080/v1/"


# ---------------------------------------------------------------------------
# Timeouts
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "value, expected",
    [(10, 10.0), (2.5, 2.5), ("15", 15.0), (" 3 ", 3.0), (0, 0.0)],
)
def test_coerce_seconds_accepts_numbers(value, expected):
    assert coerce_seconds(value) == expected


@pytest.mark.parametrize("value", ["not-a-number", -1, None, True, [5], float("nan")])
def test_coerce_seconds_rejects_non_numbers(value):
    assert coerce_seconds(value) is None


def test_set_connection_timeout_ignores_non_numeric():
    client = LndClient()
    client.set_connection_timeout(12)
    client.set_connection_timeout("not-a-number")
    assert client.config.connect_timeout == 12.0


def test_set_connection_timeout_ignores_negative():
    client = LndClient()
    client.set_connection_timeout(-3)
    assert client.config.connect_timeout == DEFAULT_CONNECT_TIMEOUT


def test_set_request_timeout():
    client = LndClient()
    client.set_request_timeout("45")
    client.set_request_timeout("soon")
    assert client.config.request_timeout == 45.0


# ---------------------------------------------------------------------------
# Macaroon
# ---------------------------------------------------------------------------


def test_load_macaroon_returns_uppercase_hex(macaroon_file):
    assert load_macaroon(str(macaroon_file)) == "0201036C6E64DEAD"


def test_load_macaroon_missing_file_raises(tmp_path):
    with pytest.raises(CredentialNotFound) as excinfo:
        load_macaroon(str(tmp_path / "missing.macaroon"))
    assert isinstance(excinfo.value, LndError)
    assert isinstance(excinfo.value, FileNotFoundError)


def test_client_loads_macaroon_from_file(macaroon_file):
    client = LndClient()
    client.load_macaroon_from_file(str(macaroon_file))
    assert client.config.macaroon_hex == macaroon_file.read_bytes().hex().upper()


def test_macaroon_from_bytes_is_hex_encoded():
    client = LndClient()
    client.load_macaroon_from_data(b"\xde\xad\xbe\xef")
    assert client.config.macaroon_hex == "DEADBEEF"


def test_macaroon_from_hex_string_is_uppercased():
    client = LndClient()
    client.load_macaroon_from_data("deadbeef")
    assert client.config.macaroon_hex == "DEADBEEF"


@pytest.mark.parametrize("data", [b"", ""])
def test_empty_macaroon_data_raises(data):
    client = LndClient()
    with pytest.raises(CredentialEmpty):
        client.load_macaroon_from_data(data)


# ---------------------------------------------------------------------------
# TLS material
# ---------------------------------------------------------------------------


def test_load_tls_cert_enables_verification(tmp_path):
    cert = tmp_path / "tls.cert"
    cert.write_text("-----BEGIN CERTIFICATE-----\n")

    client = LndClient()
    assert client.config.verify_tls is False
    client.load_tls_cert(str(cert))

    assert client.config.tls_cert == str(cert)
    assert client.config.verify_tls is True


def test_load_tls_cert_missing_raises(tmp_path):
    client = LndClient()
    with pytest.raises(CertificateNotFound):
        client.load_tls_cert(str(tmp_path / "tls.cert"))
    assert client.config.verify_tls is False


def test_set_cacert_file(tmp_path):
    bundle = tmp_path / "cacert.pem"
    bundle.write_text("")
    client = LndClient()

    assert client.set_cacert_file(str(tmp_path / "missing.pem")) is False
    assert client.config.ca_bundle is None
    assert client.set_cacert_file(str(bundle)) is True
    assert client.config.ca_bundle == str(bundle)


# ---------------------------------------------------------------------------
# Immutability
# ---------------------------------------------------------------------------


def test_config_is_frozen():
    config = LndConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.connect_timeout = 1  # type: ignore[misc]


def test_setters_replace_config_instead_of_mutating():
    client = LndClient("node.example.com:8080")
    before = client.config
    client.set_connection_timeout(9)

    assert before.connect_timeout == DEFAULT_CONNECT_TIMEOUT
    assert client.config.connect_timeout == 9.0
    assert client.config is not before


def test_force_disable_cache_property():
    client = LndClient()
    client.force_disable_cache = True
    assert client.config.force_disable_cache is True


# ---------------------------------------------------------------------------
# config_from_mapping / build_client
# ---------------------------------------------------------------------------


def test_config_from_mapping_uses_defaults(clean_env, macaroon_file):
    config = config_from_mapping({"macaroon_path": str(macaroon_file)})

    assert config.base_url == "https://127.0.0.1:8080/v1/"
    assert config.macaroon_hex == "0201036C6E64DEAD"
    assert config.tls_cert is None
    assert config.connect_timeout == DEFAULT_CONNECT_TIMEOUT


def test_config_from_mapping_reads_env(clean_env, macaroon_file, tmp_path):
    cert = tmp_path / "tls.cert"
    cert.write_text("")
    clean_env.setenv("LND_REST_HOST", "node.example.com")
    clean_env.setenv("LND_REST_PORT", "10080")
    clean_env.setenv("LND_MACAROON_PATH", str(macaroon_file))
    clean_env.setenv("LND_TLS_CERT", str(cert))
    clean_env.setenv("LND_CONNECT_TIMEOUT", "2")
    clean_env.setenv("LND_REQUEST_TIMEOUT", "garbage")

    config = config_from_mapping()

    assert config.base_url == "https://node.example.com:10080/v1/"
    assert config.tls_cert == str(cert)
    assert config.connect_timeout == 2.0
    assert config.request_timeout == 30.0


def test_mapping_takes_precedence_over_env(clean_env, macaroon_file):
    clean_env.setenv("LND_REST_HOST", "env.example.com")
    config = config_from_mapping(
        {"rest_host": "map.example.com", "macaroon_path": str(macaroon_file)}
    )
    assert config.base_url == "https://map.example.com:8080/v1/"


def test_config_from_mapping_requires_macaroon(clean_env):
    with pytest.raises(ValueError, match="macaroon"):
        config_from_mapping({})


def test_config_from_mapping_missing_cert_raises(clean_env, macaroon_file, tmp_path):
    with pytest.raises(CertificateNotFound):
        config_from_mapping(
            {"macaroon_path": str(macaroon_file), "tls_cert": str(tmp_path / "nope")}
        )


def test_build_client(clean_env, macaroon_file):
    client = build_client({"rest_host": "10.0.0.5", "rest_port": 10009, "macaroon_path": str(macaroon_file)})
    assert isinstance(client, LndClient)
    assert client.base_url == "https://10.0.0.5:10009/v1/"


def test_config_from_mapping_missing_ca_bundle_raises(clean_env, macaroon_file, tmp_path):
    clean_env.setenv("LND_CA_BUNDLE", str(tmp_path / "missing.pem"))
    with pytest.raises(CertificateNotFound):
        config_from_mapping({"macaroon_path": str(macaroon_file)})
