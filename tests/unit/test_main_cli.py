from __future__ import annotations

import asyncio

import pytest
import yaml

from phasegate.main import build_parser, main
from phasegate.models import Collection, Phase
from phasegate.store.database import open_record_store
from phasegate.utils.structured_log import load_audit_events


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        yaml.dump(
            {
                "gates": {"require_final_inspection": True, "require_client_acceptance": True},
                "store": {"db_path": str(tmp_path / "cli.db")},
                "logging": {"level": "minimal", "audit_log_dir": str(tmp_path / "logs")},
            }
        )
    )
    return path


def _run(settings_file, *argv) -> int:
    return main(["--settings", str(settings_file), *argv])


async def _phase_of(db_path: str, wp_id: str) -> Phase:
    async with open_record_store(db_path) as store:
        wp = await store.get(Collection.WORK_PACKAGE, wp_id)
    return wp.phase


def test_parser_subcommands() -> None:
    parser = build_parser()
    parsed = parser.parse_args(["advance", "WP-1", "--actor", "pm"])
    assert parsed.command == "advance"
    assert parsed.target is None
    with pytest.raises(SystemExit):
        parser.parse_args(["advance", "WP-1"])
    with pytest.raises(SystemExit):
        parser.parse_args(["next", "installed"])


def test_next_and_path(capsys) -> None:
    assert main(["next", "erection"]) == 0
    assert "closeout" in capsys.readouterr().out

    assert main(["next", "completed"]) == 0
    assert "terminal" in capsys.readouterr().out

    assert main(["path", "planning", "delivery"]) == 0
    assert "planning -> detailing -> fabrication -> delivery" in capsys.readouterr().out

    assert main(["path", "delivery", "planning"]) == 1


def test_missing_settings_file(tmp_path, capsys) -> None:
    assert main(["--settings", str(tmp_path / "nope.yaml"), "board", "P-100"]) == 1
    assert "Missing config file" in capsys.readouterr().out


def test_demo_workflow(settings_file, tmp_path, capsys) -> None:
    db_path = str(tmp_path / "cli.db")
    assert _run(settings_file, "seed-demo") == 0
    assert "Seeded" in capsys.readouterr().out

    assert _run(settings_file, "board", "P-100") == 0
    board = capsys.readouterr().out
    assert "WP-001" in board
    assert "WP-007" in board

    assert _run(settings_file, "evaluate", "WP-006") == 0
    assert "BLOCKED" in capsys.readouterr().out

    assert _run(settings_file, "advance", "WP-002", "--actor", "pm-1") == 1
    capsys.readouterr()
    assert asyncio.run(_phase_of(db_path, "WP-002")) == Phase.DETAILING

    assert _run(settings_file, "advance", "WP-003", "--actor", "pm-1") == 0
    assert "Advanced" in capsys.readouterr().out
    assert asyncio.run(_phase_of(db_path, "WP-003")) == Phase.FABRICATION

    assert _run(settings_file, "advance", "WP-003", "--target", "erection", "--actor", "pm-1") == 1

    assert _run(settings_file, "history", "WP-003") == 0
    assert "detailing -> fabrication" in capsys.readouterr().out

    events = load_audit_events(str(tmp_path / "logs" / "audit.jsonl"), work_package_id="WP-003")
    assert any(e.get("action") == "execute" and e["overall_pass"] for e in events)
    assert all(e.get("request_id") and e["actor"] == "pm-1" for e in events if e.get("action") == "execute")

    assert _run(settings_file, "history", "WP-002") == 0
    assert "No recorded transitions" in capsys.readouterr().out

    assert _run(settings_file, "history", "WP-002", "--audit") == 0
    audit = capsys.readouterr().out
    assert "BLOCKED" in audit
    assert "pm-1" in audit


def test_unknown_work_package(settings_file, capsys) -> None:
    assert _run(settings_file, "evaluate", "WP-404") == 1
    assert "NotFoundError" in capsys.readouterr().out


def test_seed_twice_fails_cleanly(settings_file, capsys) -> None:
    assert _run(settings_file, "seed-demo") == 0
    assert _run(settings_file, "seed-demo") == 1
    assert "already exists" in capsys.readouterr().out
