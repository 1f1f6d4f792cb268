#!/usr/bin/env python3
"""Dump a user's debts as the debtsync client sees them.

Talks to a live PostgREST/Supabase endpoint through the full client
stack (cache, query function, REST store) and prints the parsed rows
plus the totals, so schema drift shows up as parse errors.

Usage
-----
Set environment variables and run::

    export DEBTSYNC_BASE_URL="https://<project>.supabase.co"
    export DEBTSYNC_API_KEY="<anon key>"
    export DEBTSYNC_USER_ID="<auth user id>"
    export DEBTSYNC_ACCESS_TOKEN="<user JWT>"
    python scripts/dump_debts.py

Options::

    --json               Output as machine-readable JSON
    --currency USD       Currency used for formatted amounts
    --trace              Log redacted requests/responses
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from debtsync import (  # noqa: E402
    AuthUser,
    Currency,
    DebtSyncClient,
    DebtSyncError,
    SessionAuthProvider,
    SyncConfig,
    format_amount,
)


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


async def main() -> int:
    parser = argparse.ArgumentParser(description="Dump the signed-in user's debts.")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--currency", default="INR", choices=[c.value for c in Currency])
    parser.add_argument("--trace", action="store_true", help="Log redacted requests/responses")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.trace else logging.WARNING)

    user_id = os.environ.get("DEBTSYNC_USER_ID")
    if not user_id:
        print("DEBTSYNC_USER_ID is required", file=sys.stderr)
        return 2

    config = SyncConfig.from_env(api_trace_enabled=args.trace)
    auth = SessionAuthProvider(
        AuthUser(
            id=user_id,
            email=os.environ.get("DEBTSYNC_EMAIL", ""),
            access_token=os.environ.get("DEBTSYNC_ACCESS_TOKEN"),
        )
    )

    try:
        async with DebtSyncClient(config, auth) as client:
            debts = await client.fetch_debts()
            summary = client.summary()
    except DebtSyncError as exc:
        print(f"!! fetch failed: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1

    if args.json_mode:
        payload: dict[str, Any] = {
            "debts": [debt.model_dump(mode="json") for debt in debts],
            "summary": summary.model_dump(mode="json"),
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    print(_section(f"DEBTS  user={user_id}  count={len(debts)}"))
    for debt in debts:
        print(
            f"  {debt.creditor:<30} {format_amount(debt.amount, args.currency):>14}"
            f"  {debt.status.value:<8} {debt.priority.value:<6} id={debt.id}"
        )
    print(_section("TOTALS"))
    print(f"  total:    {format_amount(summary.total, args.currency)}")
    print(f"  pending:  {format_amount(summary.pending_total, args.currency)} ({summary.pending_count})")
    print(f"  paid:     {format_amount(summary.paid_total, args.currency)}")
    for priority, amount in summary.by_priority.items():
        print(f"  {priority.value.lower():<9} {format_amount(amount, args.currency)}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
