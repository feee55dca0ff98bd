from __future__ import annotations

from accrual.vault.exchange import ExchangeWrapper, InMemoryPayoutSink, PayoutSink

__all__ = ["ExchangeWrapper", "InMemoryPayoutSink", "PayoutSink"]
