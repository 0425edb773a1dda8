from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "accrual" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)


@pytest.fixture(autouse=True)
def _isolate_accrual_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Tests must not pick up an operator's config or .env.
    for name in (
        "ACCRUAL_POOL_CONFIG",
        "ACCRUAL_POOL_ID",
        "ACCRUAL_MODE",
        "ACCRUAL_DB_PATH",
        "ACCRUAL_OWNER",
        "ACCRUAL_TOKEN",
        "ACCRUAL_REWARD_RATE",
        "ACCRUAL_AUTO_INITIALIZE",
        "ACCRUAL_ADMIN_TOKEN",
        "ACCRUAL_METRICS_ENABLED",
        "ACCRUAL_LOG_LEVEL",
        "ACCRUAL_DOTENV_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
