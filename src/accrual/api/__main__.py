# src/accrual/api/__main__.py
from __future__ import annotations

import uvicorn

from accrual.env import load_dotenv_if_present


def main() -> None:
    """Serve the pool API with uvicorn.

    The in-process custody backend is only accepted in dev/testnet mode.
    prod deployments embed create_app(custody=...) with their own backend.
    """
    # Load .env early so ACCRUAL_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from accrual.api.app import create_app
    from accrual.runtime.ledger_logging import configure_structured_logging
    from accrual.runtime.pool_config import load_pool_config

    cfg = load_pool_config()
    configure_structured_logging(cfg.log_level)

    uvicorn.run(create_app(), host=cfg.api_host, port=cfg.api_port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
