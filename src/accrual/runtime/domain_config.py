# src/accrual/runtime/domain_config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from accrual.bridge.adapter import RateLimitConfig
from accrual.ledger.constants import INITIAL_DEFAULT_RATE

Json = Dict[str, Any]


def _as_int(v: Any, default: int, field: str) -> int:
    if v is None:
        return int(default)
    if isinstance(v, int) and not isinstance(v, bool):
        return v
    if isinstance(v, str) and v.strip().isascii() and v.strip().isdigit():
        return int(v.strip())
    # YAML reads 5e10 as a string; refuse it rather than boot on the default.
    raise ValueError(f"{field} must be an integer; got: {v!r}")


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class RemoteDomainConfig:
    domain_id: str
    remote_adapter: str  # peer adapter Ed25519 public key (hex)
    remote_token: str
    outbound: RateLimitConfig = field(default_factory=RateLimitConfig)
    inbound: RateLimitConfig = field(default_factory=RateLimitConfig)


@dataclass(frozen=True)
class DomainConfig:
    domain_id: str
    mode: str  # "dev" | "testnet" | "prod"

    owner: str
    adapter_address: str
    vault_address: str
    token_id: str

    # Ed25519 seed (hex) the adapter signs envelopes with. Supplied, never generated.
    adapter_key: str

    default_rate: int
    max_envelope_bytes: int

    api_host: str
    api_port: int
    log_level: str

    remote_domains: Tuple[RemoteDomainConfig, ...] = ()


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_domain_config(cfg: DomainConfig) -> None:
    """Fail-fast validation for operator config."""

    for name in ("domain_id", "owner", "adapter_address", "vault_address", "token_id"):
        v = getattr(cfg, name)
        if not isinstance(v, str) or not v.strip():
            raise ValueError(f"{name} must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if len({cfg.owner, cfg.adapter_address, cfg.vault_address}) != 3:
        raise ValueError("owner, adapter_address and vault_address must be distinct")

    if not isinstance(cfg.adapter_key, str) or not cfg.adapter_key.strip():
        raise ValueError("adapter_key must be set (ACCRUAL_ADAPTER_KEY or adapter_key in config)")

    if int(cfg.default_rate) < 0:
        raise ValueError(f"default_rate must be >= 0; got: {cfg.default_rate}")

    if int(cfg.max_envelope_bytes) < 256:
        raise ValueError(f"max_envelope_bytes must be >= 256; got: {cfg.max_envelope_bytes}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    seen = set()
    for rd in cfg.remote_domains:
        if not rd.domain_id.strip() or not rd.remote_adapter.strip() or not rd.remote_token.strip():
            raise ValueError("remote domains need domain_id, remote_adapter and remote_token")
        if rd.domain_id == cfg.domain_id:
            raise ValueError(f"remote domain {rd.domain_id!r} equals the local domain")
        if rd.domain_id in seen:
            raise ValueError(f"duplicate remote domain {rd.domain_id!r}")
        seen.add(rd.domain_id)
        rd.outbound.validate()
        rd.inbound.validate()


def default_domain_config() -> DomainConfig:
    return DomainConfig(
        domain_id="accrual-dev",
        # Production-safe default: never silently drop into dev posture.
        mode="prod",
        owner="owner",
        adapter_address="bridge-adapter",
        vault_address="vault",
        token_id="accrual-dev:ACR",
        adapter_key=os.environ.get("ACCRUAL_ADAPTER_KEY", ""),
        default_rate=INITIAL_DEFAULT_RATE,
        max_envelope_bytes=4_096,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
        remote_domains=(),
    )


def _read_remote_domains(raw: Any) -> Tuple[RemoteDomainConfig, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("remote_domains must be a list")
    out = []
    for it in raw:
        if not isinstance(it, dict):
            raise ValueError("remote_domains entries must be objects")
        out.append(
            RemoteDomainConfig(
                domain_id=_as_str(it.get("domain_id"), ""),
                remote_adapter=_as_str(it.get("remote_adapter"), ""),
                remote_token=_as_str(it.get("remote_token"), ""),
                outbound=RateLimitConfig.from_json(it.get("outbound")),
                inbound=RateLimitConfig.from_json(it.get("inbound")),
            )
        )
    return tuple(out)


def read_domain_config_file(path: str) -> DomainConfig:
    """Read a YAML (or JSON, a YAML subset) domain config file."""
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("domain config must be a mapping")

    d = default_domain_config()

    key = raw.get("adapter_key")
    key_path = raw.get("adapter_key_path")
    if key is None and key_path:
        key = Path(str(key_path)).expanduser().read_text(encoding="utf-8").strip()

    cfg = DomainConfig(
        domain_id=_as_str(raw.get("domain_id"), d.domain_id),
        mode=_as_str(raw.get("mode"), d.mode),
        owner=_as_str(raw.get("owner"), d.owner),
        adapter_address=_as_str(raw.get("adapter_address"), d.adapter_address),
        vault_address=_as_str(raw.get("vault_address"), d.vault_address),
        token_id=_as_str(raw.get("token_id"), d.token_id),
        adapter_key=_as_str(key, d.adapter_key),
        default_rate=_as_int(raw.get("default_rate"), d.default_rate, "default_rate"),
        max_envelope_bytes=_as_int(raw.get("max_envelope_bytes"), d.max_envelope_bytes, "max_envelope_bytes"),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port, "api_port"),
        log_level=_as_str(raw.get("log_level"), d.log_level),
        remote_domains=_read_remote_domains(raw.get("remote_domains")),
    )

    validate_domain_config(cfg)
    return cfg


def load_domain_config(*, config_path: Optional[str] = None) -> DomainConfig:
    p = config_path or os.environ.get("ACCRUAL_DOMAIN_CONFIG_PATH")
    if p:
        return read_domain_config_file(p)

    cfg = default_domain_config()
    validate_domain_config(cfg)
    return cfg


def apply_domain_config_to_env(cfg: DomainConfig) -> None:
    validate_domain_config(cfg)
    os.environ["ACCRUAL_DOMAIN_ID"] = cfg.domain_id
    os.environ["ACCRUAL_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["ACCRUAL_LOG_LEVEL"] = cfg.log_level
