# src/accrual/runtime/boot.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from accrual.bridge.adapter import CrossDomainAdapter
from accrual.bridge.endpoint import BridgeEndpoint
from accrual.ledger.auth import RoleRegistry
from accrual.ledger.ledger import AccrualLedger
from accrual.runtime.clock import Clock, system_clock
from accrual.runtime.domain_config import DomainConfig, load_domain_config
from accrual.vault.exchange import ExchangeWrapper, InMemoryPayoutSink, PayoutSink


@dataclass
class Domain:
    """Everything one domain runs: roles, ledger, wrapper, adapter, relay endpoint."""

    config: DomainConfig
    roles: RoleRegistry
    ledger: AccrualLedger
    vault: ExchangeWrapper
    adapter: CrossDomainAdapter
    endpoint: BridgeEndpoint

    @property
    def domain_id(self) -> str:
        return self.config.domain_id

    def snapshot(self) -> Dict[str, Any]:
        """Ledger, wrapper reserve and endpoint state; feed back through build_domain(state=...)."""
        with self.ledger.atomic():
            return {
                "ledger": self.ledger.snapshot(),
                "vault": self.vault.snapshot(),
                "endpoint": self.endpoint.snapshot(),
            }


def build_domain(
    cfg: Optional[DomainConfig] = None,
    *,
    clock: Clock = system_clock,
    payout: Optional[PayoutSink] = None,
    state: Optional[Dict[str, Any]] = None,
) -> Domain:
    """
    Wire a domain from an explicit config or, if omitted, from
    ACCRUAL_DOMAIN_CONFIG_PATH / defaults.

    The wrapper and the adapter receive MINT_BURN; remote domains from the
    config are registered by the owner. `state` (from Domain.snapshot) restores
    balances, the reserve, envelope nonces and already-applied message ids.
    """
    c = cfg or load_domain_config()

    roles = RoleRegistry(owner=c.owner)
    roles.grant_mint_and_burn(c.owner, c.vault_address)
    roles.grant_mint_and_burn(c.owner, c.adapter_address)

    if state is not None:
        ledger = AccrualLedger.from_snapshot(state.get("ledger") or {}, authorizer=roles, clock=clock, domain_id=c.domain_id)
    else:
        ledger = AccrualLedger(authorizer=roles, clock=clock, default_rate=c.default_rate, domain_id=c.domain_id)
    vault = ExchangeWrapper(
        ledger=ledger,
        authorizer=roles,
        address=c.vault_address,
        payout=payout if payout is not None else InMemoryPayoutSink(),
    )
    adapter = CrossDomainAdapter(ledger=ledger, authorizer=roles, address=c.adapter_address)
    for rd in c.remote_domains:
        adapter.register_remote_domain(
            c.owner,
            rd.domain_id,
            rd.remote_adapter,
            rd.remote_token,
            outbound=rd.outbound,
            inbound=rd.inbound,
        )

    endpoint = BridgeEndpoint(
        adapter=adapter,
        signing_key=c.adapter_key,
        token_id=c.token_id,
        max_envelope_bytes=c.max_envelope_bytes,
    )
    if state is not None:
        vault.restore(state.get("vault") or {})
        endpoint.restore(state.get("endpoint") or {})
    return Domain(config=c, roles=roles, ledger=ledger, vault=vault, adapter=adapter, endpoint=endpoint)
