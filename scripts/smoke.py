#!/usr/bin/env python3

"""Operator smoke test for the mining reward service.

It verifies:
  - the service boots on a fresh SQLite db with bootstrap roles
  - FastAPI app boots and serves /v1/health
  - a batch can be published, funded and claimed end to end
  - the ledger survives a restart on the same db

Usage:
  python3 scripts/smoke.py

Optional env overrides:
  MININGREWARD_BATCH_MODE=accumulate
  MININGREWARD_SERVICE_ID=MINING_REWARD
"""

from __future__ import annotations

import os
import tempfile

from fastapi.testclient import TestClient

from miningreward.api.app import create_app
from miningreward.ledger.constants import TOKEN_UNIT

UNIT = TOKEN_UNIT


def _ok(r) -> dict:
    assert r.status_code == 200, r.text
    j = r.json()
    assert bool(j.get("ok")) is True, j
    return j


def main() -> int:
    with tempfile.TemporaryDirectory(prefix="miningreward-smoke-") as td:
        os.environ["MININGREWARD_DB_PATH"] = os.path.join(td, "reward.db")
        os.environ["MININGREWARD_MODE"] = "dev"
        os.environ.setdefault("MININGREWARD_BOOTSTRAP_ADMIN", "smoke-admin")
        os.environ.setdefault("MININGREWARD_BOOTSTRAP_COIN_ADMIN", "smoke-coin-admin")

        admin = os.environ["MININGREWARD_BOOTSTRAP_ADMIN"]
        coin_admin = os.environ["MININGREWARD_BOOTSTRAP_COIN_ADMIN"]

        with TestClient(create_app(boot_runtime=True)) as c:
            health = _ok(c.get("/v1/health"))
            assert health["initialized"] is True, health
            service_id = health["service_id"]

            _ok(
                c.post(
                    "/v1/reward/batch_set",
                    json={"caller": admin, "accounts": ["miner-1"], "amounts": [3 * UNIT], "datetime": 1},
                )
            )
            _ok(c.post("/v1/token/mint", json={"to": coin_admin, "amount": 10 * UNIT}))
            _ok(c.post("/v1/token/transfer", json={"sender": coin_admin, "to": service_id, "amount": 10 * UNIT}))
            claim = _ok(c.post("/v1/reward/claim", json={"caller": "miner-1"}))
            assert claim["receipt"]["amount"] == 3 * UNIT, claim

        # Restart on the same db: entitlements and watermark persist.
        with TestClient(create_app(boot_runtime=True)) as c:
            dt = _ok(c.get("/v1/reward/datetime"))["datetime"]
            if dt != 1:
                raise RuntimeError(f"watermark did not persist: datetime={dt}")
            bal = _ok(c.get("/v1/reward/balance/miner-1"))["balance"]
            if bal != 0:
                raise RuntimeError(f"claimed entitlement reappeared after restart: balance={bal}")

        print("OK: health + batch/fund/claim + restart", {"service_id": service_id, "datetime": dt})
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
