#!/usr/bin/env python3

"""Replay a simple staking timeline against a fresh pool and print results.

Uses the in-memory store and custody with a scripted clock, so it is
deterministic and needs no database.

Usage:
  python3 scripts/pool_simulate.py
  python3 scripts/pool_simulate.py --rate 1 --fund 1000 \
      --event 0:deposit:alice:100 --event 50:deposit:bob:200 --until 100

Event format: <t>:<op>:<participant>[:<amount>] with op in
{deposit, withdraw, claim}.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Tuple

from accrual.runtime.custody import InMemoryCustody
from accrual.runtime.engine import AccrualLedger, AdminCapability
from accrual.runtime.errors import LedgerError
from accrual.runtime.memory_store import MemoryPoolStore

_DEFAULT_EVENTS = ["0:deposit:alice:100", "50:deposit:bob:200"]


class _ScriptedClock:
    def __init__(self) -> None:
        self.t = 0

    def __call__(self) -> int:
        return self.t


def _parse_event(raw: str) -> Tuple[int, str, str, int]:
    parts = raw.split(":")
    if len(parts) not in (3, 4):
        raise argparse.ArgumentTypeError(f"bad event: {raw!r}")
    amount = int(parts[3]) if len(parts) == 4 else 0
    return int(parts[0]), parts[1].strip().lower(), parts[2].strip(), amount


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Replay a staking timeline against a fresh accrual pool.")
    ap.add_argument("--rate", type=int, default=1, help="reward units per second")
    ap.add_argument("--fund", type=int, default=1000, help="reward reserve funded at t=0")
    ap.add_argument("--event", action="append", default=None, help="<t>:<op>:<participant>[:<amount>]")
    ap.add_argument("--until", type=int, default=100, help="observation time")
    args = ap.parse_args(argv)

    events = sorted(_parse_event(e) for e in (args.event or _DEFAULT_EVENTS))

    clock = _ScriptedClock()
    custody = InMemoryCustody()
    ledger = AccrualLedger(store=MemoryPoolStore(), custody=custody, clock=clock)

    owner = "owner"
    custody.mint(owner, max(int(args.fund), 0))
    ledger.initialize(owner=owner, token="REWARD", reward_rate=int(args.rate))
    if args.fund > 0:
        ledger.fund(AdminCapability(owner), int(args.fund))

    participants: List[str] = []
    for t, op, who, amount in events:
        clock.t = t
        if who not in participants:
            participants.append(who)
        try:
            if op == "deposit":
                custody.mint(who, amount)
                receipt = ledger.deposit(who, amount)
            elif op == "withdraw":
                receipt = ledger.withdraw(who, amount)
            elif op == "claim":
                receipt = ledger.claim(who)
            else:
                print(f"unknown op {op!r}", file=sys.stderr)
                return 2
            print(json.dumps({"t": t, "receipt": receipt}, sort_keys=True))
        except LedgerError as e:
            print(json.dumps({"t": t, "op": op, "participant": who, "rejected": str(e)}, sort_keys=True))

    clock.t = int(args.until)
    report = {
        "t": clock.t,
        "pool": ledger.pool_summary(),
        "participants": {p: ledger.participant_summary(p) for p in participants},
    }
    print(json.dumps(report, sort_keys=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
