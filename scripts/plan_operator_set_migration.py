"""
Dry-run the quorum -> operator-set migration against a JSON registry fixture.

Read-only: builds in-memory registry collaborators from the fixture, computes
the migration plan (global operator set + per-operator operator-set ids) and
prints it as JSON. Nothing is sent to a directory.

Usage:
  python3 scripts/plan_operator_set_migration.py --fixture state.json --pretty
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

# Allow running as: `python3 scripts/plan_operator_set_migration.py` from repo root.
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)

from service_manager.collaborators.memory import InMemoryDirectory, load_fixture
from service_manager.common.config import ServiceManagerConfig, configure_logging
from service_manager.migration.migrator import OperatorSetMigrator
from service_manager.strategies.query import RestakeableStrategyQuery


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Plan the quorum -> operator-set migration (dry run).")
    p.add_argument("--fixture", required=True, help="Path to a JSON registry fixture.")
    p.add_argument("--block", type=int, default=None, help="Snapshot block (default: fixture block).")
    p.add_argument("--with-strategies", action="store_true", help="Include restakeable strategies in the output.")
    p.add_argument("--pretty", action="store_true", help="Indent the JSON output.")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    # Quiet by default so stdout stays parseable JSON.
    configure_logging(ServiceManagerConfig.from_env(), level=os.getenv("LOG_LEVEL") or "WARNING")

    fixture = json.loads(Path(args.fixture).read_text(encoding="utf-8"))
    registry, stake_registry = load_fixture(fixture)

    migrator = OperatorSetMigrator(directory=InMemoryDirectory(), registry=registry)
    out = migrator.plan(block_reference=args.block).to_dict()
    if args.with_strategies:
        out["restakeable_strategies"] = RestakeableStrategyQuery(
            registry=registry, stake_registry=stake_registry
        ).restakeable_strategies()

    print(json.dumps(out, indent=2 if args.pretty else None, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
