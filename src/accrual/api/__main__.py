# src/accrual/api/__main__.py
from __future__ import annotations

import uvicorn

from accrual.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so ACCRUAL_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from accrual.api.app import create_app
    from accrual.runtime.domain_config import apply_domain_config_to_env, load_domain_config

    cfg = load_domain_config()
    apply_domain_config_to_env(cfg)

    from accrual.runtime.boot import build_domain

    uvicorn.run(
        create_app(domain=build_domain(cfg)),
        host=cfg.api_host,
        port=cfg.api_port,
        log_level=cfg.log_level.lower(),
    )


if __name__ == "__main__":
    main()
