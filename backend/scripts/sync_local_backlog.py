"""CLI helper for pushing rows cached in the local JSON store to Supabase."""

from __future__ import annotations

import sys
from typing import Any, Dict

from club_core.loader import DataStore


def _describe_table(table: str, stats: Dict[str, Any]) -> str:
    lines = [f"{table}: {stats.get('synced', 0)} synced, {stats.get('remaining', 0)} left in backlog"]
    lines.extend(f"  ! {error}" for error in stats.get("errors") or [])
    return "\n".join(lines)


def main() -> int:
    store = DataStore()
    try:
        summary = store.sync_local_backlog()
    except RuntimeError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if not summary:
        print(f"Nothing to sync in {store.data_dir}.")
        return 0

    for table, stats in summary.items():
        print(_describe_table(table, stats))

    synced = sum(stats.get("synced", 0) for stats in summary.values())
    failed = sum(len(stats.get("errors") or []) for stats in summary.values())
    print(f"\n{synced} rows pushed from {len(summary)} tables; {failed} problems.")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
