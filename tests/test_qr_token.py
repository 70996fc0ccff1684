"""
Tests for the QR token codec: URL safety and total decoding.
"""

import base64
import json

import pytest

from signing.qr_token import QrTokenPayload, generate_qr_token, parse_qr_token


def _encode(obj) -> str:
    raw = json.dumps(obj).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def test_token_is_url_safe_and_unpadded():
    token = generate_qr_token(7, "a+b/c==", "d+e/f==")
    assert "=" not in token
    assert "+" not in token
    assert "/" not in token


def test_token_decodes_to_its_fields():
    token = generate_qr_token(42, "c3VwcGxpZXI=", "c2VydmVy")
    payload = parse_qr_token(token)
    assert isinstance(payload, QrTokenPayload)
    assert payload.order_id == 42
    assert payload.supplier_signature == "c3VwcGxpZXI="
    assert payload.server_signature == "c2VydmVy"
    assert payload.timestamp > 0
    assert len(payload.nonce) == 16


def test_tokens_for_same_order_differ_by_nonce():
    assert generate_qr_token(1, "ss", "svs") != generate_qr_token(1, "ss", "svs")


@pytest.mark.parametrize("token", [
    None,
    "",
    "not a token",
    "%%%%",
    "a",
    _encode([1, 2, 3]),
    _encode("just a string"),
    _encode({"ss": "x", "svs": "y"}),
    _encode({"oid": "7", "ss": "x", "svs": "y"}),
    _encode({"oid": True, "ss": "x", "svs": "y"}),
    _encode({"oid": 7, "ss": 5, "svs": "y"}),
    _encode({"oid": 7, "ss": "x", "svs": ""}),
    _encode({"oid": 7, "ss": "x", "svs": "y", "ts": "yesterday"}),
    base64.urlsafe_b64encode(b"\xff\xfe\xfd").decode("ascii"),
    _encode({"oid": 0, "ss": "x", "svs": "y"}),
    _encode({"oid": -5, "ss": "x", "svs": "y"}),
    _encode({"oid": 2 ** 31, "ss": "x", "svs": "y"}),
    _encode({"oid": 10 ** 30, "ss": "x", "svs": "y"}),
])
def test_malformed_tokens_decode_to_none(token):
    assert parse_qr_token(token) is None


def test_missing_timestamp_and_nonce_are_tolerated():
    payload = parse_qr_token(_encode({"oid": 3, "ss": "x", "svs": "y"}))
    assert payload.order_id == 3
    assert payload.timestamp == 0
    assert payload.nonce == ""


def test_deeply_nested_json_decodes_to_none():
    token = base64.urlsafe_b64encode(b"[" * 100000).decode("ascii").rstrip("=")
    assert parse_qr_token(token) is None


def test_largest_database_id_is_accepted():
    assert parse_qr_token(generate_qr_token(2 ** 31 - 1, "x", "y")).order_id == 2 ** 31 - 1
