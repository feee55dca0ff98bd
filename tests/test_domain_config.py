from __future__ import annotations

import os
from dataclasses import replace

import pytest

from accrual.bridge.sig import generate_adapter_key, public_key_hex
from accrual.runtime.boot import build_domain
from accrual.runtime.domain_config import (
    apply_domain_config_to_env,
    default_domain_config,
    load_domain_config,
    read_domain_config_file,
    validate_domain_config,
)
from accrual.runtime.errors import InvalidRateLimitConfig


def _write_yaml(tmp_path, text: str):
    p = tmp_path / "domain.yaml"
    p.write_text(text, encoding="utf-8")
    return p


def test_yaml_file_is_read_and_validated(tmp_path) -> None:
    peer = public_key_hex(generate_adapter_key())
    p = _write_yaml(
        tmp_path,
        f"""
domain_id: x
mode: dev
token_id: "x:ACR"
adapter_key: "{generate_adapter_key()}"
default_rate: 50000000000
api_port: 9090
remote_domains:
  - domain_id: y
    remote_adapter: "{peer}"
    remote_token: "y:ACR"
    outbound: {{enabled: true, capacity: 1000, rate: 10}}
""",
    )

    cfg = read_domain_config_file(str(p))

    assert cfg.domain_id == "x"
    assert cfg.mode == "dev"
    assert cfg.api_port == 9090
    assert cfg.default_rate == 5 * 10**10
    # unspecified keys fall back to defaults
    assert cfg.vault_address == "vault"
    assert len(cfg.remote_domains) == 1
    rd = cfg.remote_domains[0]
    assert rd.remote_adapter == peer
    assert rd.outbound.enabled and rd.outbound.capacity == 1000
    assert not rd.inbound.enabled


def test_adapter_key_can_come_from_a_file(tmp_path) -> None:
    key = generate_adapter_key()
    key_file = tmp_path / "adapter.key"
    key_file.write_text(key + "\n", encoding="utf-8")
    p = _write_yaml(tmp_path, f"domain_id: x\nadapter_key_path: \"{key_file}\"\n")

    assert read_domain_config_file(str(p)).adapter_key == key


def test_env_path_selects_the_file(tmp_path, monkeypatch) -> None:
    p = _write_yaml(tmp_path, f"domain_id: from-env\nadapter_key: \"{generate_adapter_key()}\"\n")
    monkeypatch.setenv("ACCRUAL_DOMAIN_CONFIG_PATH", str(p))

    assert load_domain_config().domain_id == "from-env"


def test_default_config_needs_an_adapter_key(monkeypatch) -> None:
    monkeypatch.delenv("ACCRUAL_DOMAIN_CONFIG_PATH", raising=False)
    monkeypatch.delenv("ACCRUAL_ADAPTER_KEY", raising=False)
    with pytest.raises(ValueError, match="adapter_key"):
        load_domain_config()

    monkeypatch.setenv("ACCRUAL_ADAPTER_KEY", generate_adapter_key())
    cfg = load_domain_config()
    assert cfg.mode == "prod"


@pytest.mark.parametrize(
    "over,msg",
    [
        ({"domain_id": " "}, "domain_id"),
        ({"mode": "staging"}, "mode"),
        ({"vault_address": "owner"}, "distinct"),
        ({"max_envelope_bytes": 64}, "max_envelope_bytes"),
        ({"api_port": 0}, "api_port"),
        ({"default_rate": -1}, "default_rate"),
    ],
)
def test_validation_rejects_bad_values(over, msg) -> None:
    cfg = replace(default_domain_config(), adapter_key=generate_adapter_key(), **over)
    with pytest.raises(ValueError, match=msg):
        validate_domain_config(cfg)


def test_bad_remote_rate_limit_is_rejected(tmp_path) -> None:
    p = _write_yaml(
        tmp_path,
        f"""
domain_id: x
adapter_key: "{generate_adapter_key()}"
remote_domains:
  - domain_id: y
    remote_adapter: "aa"
    remote_token: "y:ACR"
    inbound: {{enabled: true, capacity: 1, rate: 2}}
""",
    )
    with pytest.raises(InvalidRateLimitConfig):
        read_domain_config_file(str(p))


def test_remote_domain_cannot_be_self(tmp_path) -> None:
    p = _write_yaml(
        tmp_path,
        f"""
domain_id: x
adapter_key: "{generate_adapter_key()}"
remote_domains:
  - {{domain_id: x, remote_adapter: aa, remote_token: "x:ACR"}}
""",
    )
    with pytest.raises(ValueError, match="equals the local domain"):
        read_domain_config_file(str(p))


def test_apply_to_env_and_build(monkeypatch) -> None:
    # setenv first so monkeypatch restores whatever apply_domain_config_to_env writes
    for k in ("ACCRUAL_DOMAIN_ID", "ACCRUAL_MODE", "ACCRUAL_LOG_LEVEL"):
        monkeypatch.setenv(k, "")
    cfg = replace(default_domain_config(), adapter_key=generate_adapter_key(), mode="DEV")

    apply_domain_config_to_env(cfg)
    assert os.environ["ACCRUAL_DOMAIN_ID"] == "accrual-dev"
    assert os.environ["ACCRUAL_MODE"] == "dev"

    d = build_domain(cfg)
    assert d.domain_id == "accrual-dev"
    assert d.ledger.current_default_rate() == cfg.default_rate
    assert d.endpoint.public_key == public_key_hex(cfg.adapter_key)


@pytest.mark.parametrize("value", ["5e10", "fast", "true", "1.5"])
def test_non_integer_numbers_fail_instead_of_defaulting(tmp_path, value) -> None:
    p = _write_yaml(tmp_path, f"domain_id: x\nadapter_key: \"{generate_adapter_key()}\"\ndefault_rate: {value}\n")
    with pytest.raises(ValueError, match="default_rate must be an integer"):
        read_domain_config_file(str(p))
