# src/accrual/bridge/sig.py
from __future__ import annotations

import base64

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat

from accrual.bridge.messages import RelayEnvelope


def _decode_bytes(s: str) -> bytes:
    s = s.strip()
    if not s:
        raise ValueError("empty string")
    # hex
    try:
        return bytes.fromhex(s)
    except ValueError:
        pass
    # base64 / base64url
    try:
        padding = "=" * (-len(s) % 4)
        s2 = (s + padding).replace("-", "+").replace("_", "/")
        return base64.b64decode(s2, validate=True)
    except ValueError as e:
        raise ValueError("not hex or base64") from e


def _private_key(privkey: str) -> Ed25519PrivateKey:
    pk_b = _decode_bytes(privkey)

    # Accept 64-byte expanded keys by taking the 32-byte seed.
    if len(pk_b) == 64:
        pk_b = pk_b[:32]
    if len(pk_b) != 32:
        raise ValueError("ed25519 privkey must be 32-byte seed (or 64-byte expanded key)")
    return Ed25519PrivateKey.from_private_bytes(pk_b)


def generate_adapter_key() -> str:
    """Fresh 32-byte Ed25519 seed as hex (tests and local dev only)."""
    key = Ed25519PrivateKey.generate()
    return key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption()).hex()


def public_key_hex(privkey: str) -> str:
    """The adapter address peers register: raw Ed25519 public key as hex."""
    pub = _private_key(privkey).public_key()
    return pub.public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def sign_ed25519(*, message: bytes, privkey: str) -> str:
    return _private_key(privkey).sign(message).hex()


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        sig_b = _decode_bytes(sig)
        pk_b = _decode_bytes(pubkey)
        key = Ed25519PublicKey.from_public_bytes(pk_b)
        key.verify(sig_b, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def sign_envelope(env: RelayEnvelope, *, privkey: str) -> RelayEnvelope:
    return env.with_sig(sign_ed25519(message=env.signing_bytes(), privkey=privkey))


def verify_envelope(env: RelayEnvelope, *, pubkey: str) -> bool:
    if not env.sig:
        return False
    return verify_ed25519_signature(message=env.signing_bytes(), sig=env.sig, pubkey=pubkey)
