from __future__ import annotations

import importlib.util
import json
from pathlib import Path

from tests.conftest import OPERATOR_X, OPERATOR_Y, OPERATOR_Z, STRATEGY_A, STRATEGY_B

_SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "plan_operator_set_migration.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("plan_operator_set_migration", _SCRIPT)
    assert spec is not None and spec.loader is not None
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


def _write_fixture(tmp_path: Path) -> Path:
    fixture = {
        "block": 99,
        "quorums": {"0": [OPERATOR_Y, OPERATOR_X], "1": [OPERATOR_Z, OPERATOR_Y]},
        "strategies": {
            "0": [{"strategy": STRATEGY_A, "multiplier": 1}],
            "1": [{"strategy": STRATEGY_B, "multiplier": 2}],
        },
    }
    p = tmp_path / "registry.json"
    p.write_text(json.dumps(fixture), encoding="utf-8")
    return p


def test_script_prints_migration_plan(tmp_path, monkeypatch, capsys, restore_root_logging) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    mod = _load_script()
    fixture = _write_fixture(tmp_path)

    assert mod.main(["--fixture", str(fixture)]) == 0

    out = json.loads(capsys.readouterr().out)
    assert out["block_reference"] == 99
    assert out["operator_set_ids"] == [0, 1]
    assert [row["operator"] for row in out["operators"]] == [OPERATOR_X, OPERATOR_Y, OPERATOR_Z]
    assert [row["operator_set_ids"] for row in out["operators"]] == [[0], [0, 1], [1]]
    assert "restakeable_strategies" not in out


def test_script_block_override_and_strategies(tmp_path, monkeypatch, capsys, restore_root_logging) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    mod = _load_script()
    fixture = _write_fixture(tmp_path)

    assert mod.main(["--fixture", str(fixture), "--block", "7", "--with-strategies", "--pretty"]) == 0

    out = json.loads(capsys.readouterr().out)
    assert out["block_reference"] == 7
    assert out["restakeable_strategies"] == [STRATEGY_A, STRATEGY_B]
