from __future__ import annotations

from dataclasses import replace

import pytest

from accrual.bridge.codec import WireDecodeError, decode_envelope, encode_envelope, envelope_from_json
from accrual.bridge.messages import RelayEnvelope
from accrual.bridge.payload import decode_rate, encode_rate, payload_from_hex
from accrual.bridge.sig import generate_adapter_key, public_key_hex, sign_envelope, verify_envelope
from accrual.runtime.errors import MalformedPayload

from conftest import RATE_5E10


def _env(**over) -> RelayEnvelope:
    base = dict(
        source_domain="x",
        dest_domain="y",
        source_adapter="ab" * 32,
        nonce=1,
        sender="alice",
        receiver="bob",
        amount=10**30,
        payload_hex=encode_rate(RATE_5E10).hex(),
        remote_token="y:ACR",
    )
    base.update(over)
    return RelayEnvelope(**base)


def test_rate_payload_is_one_big_endian_word() -> None:
    p = encode_rate(RATE_5E10)
    assert len(p) == 32
    assert p[:24] == b"\x00" * 24
    assert decode_rate(p) == RATE_5E10
    assert decode_rate(bytearray(p)) == RATE_5E10


@pytest.mark.parametrize("bad", [b"", b"\x00" * 31, b"\x00" * 33, "00" * 32, None])
def test_decode_rate_rejects_anything_but_32_bytes(bad) -> None:
    with pytest.raises(MalformedPayload):
        decode_rate(bad)


def test_payload_from_hex_accepts_prefix_and_rejects_garbage() -> None:
    h = encode_rate(7).hex()
    assert payload_from_hex("0x" + h) == encode_rate(7)
    with pytest.raises(MalformedPayload) as ei:
        payload_from_hex("zz")
    assert ei.value.reason == "payload_not_hex"


def test_msg_id_ignores_signature_and_tracks_body() -> None:
    e = _env()
    assert e.msg_id == e.with_sig("00").msg_id
    assert e.msg_id != _env(nonce=2).msg_id
    assert len(e.msg_id) == 64


def test_envelope_wire_keeps_big_amounts_exact() -> None:
    e = _env(sig="cd" * 64)
    data = encode_envelope(e)
    assert b'"amount":"1000000000000000000000000000000"' in data

    back = decode_envelope(data)
    assert back == e
    assert back.msg_id == e.msg_id


@pytest.mark.parametrize(
    "raw,code",
    [
        ([], "invalid_message"),
        ({"version": 2}, "unsupported_version"),
        ({"version": 1, "amount": "1"}, "invalid_str_field"),
    ],
)
def test_envelope_from_json_rejects_bad_shapes(raw, code) -> None:
    with pytest.raises(WireDecodeError) as ei:
        envelope_from_json(raw)
    assert ei.value.code == code


def test_envelope_from_json_rejects_bool_and_float_amounts() -> None:
    from accrual.bridge.codec import envelope_to_json

    for bad in (True, 1.5, "-3"):
        raw = envelope_to_json(_env())
        raw["amount"] = bad
        with pytest.raises(WireDecodeError):
            envelope_from_json(raw)


def test_decode_envelope_rejects_non_json() -> None:
    with pytest.raises(WireDecodeError) as ei:
        decode_envelope(b"{not json")
    assert ei.value.code == "invalid_json"


def test_signed_envelope_verifies_only_with_signer_key() -> None:
    k1, k2 = generate_adapter_key(), generate_adapter_key()
    signed = sign_envelope(_env(source_adapter=public_key_hex(k1)), privkey=k1)

    assert verify_envelope(signed, pubkey=public_key_hex(k1))
    assert not verify_envelope(signed, pubkey=public_key_hex(k2))
    assert not verify_envelope(signed.with_sig(None), pubkey=public_key_hex(k1))

    tampered = replace(signed, amount=signed.amount + 1)
    assert not verify_envelope(tampered, pubkey=public_key_hex(k1))


@pytest.mark.parametrize("bad", ["²", "١٢٣", "1_000", " 12"])
def test_only_ascii_digit_strings_decode_as_amounts(bad) -> None:
    from accrual.bridge.codec import envelope_to_json

    raw = envelope_to_json(_env())
    raw["amount"] = bad
    with pytest.raises(WireDecodeError) as ei:
        envelope_from_json(raw)
    assert ei.value.code == "invalid_int_field"
