import json

from pomotask.main import build_context, main
from pomotask.data.repositories import TaskRepository


def test_stats_command_prints_json(tmp_path, capsys) -> None:
    code = main(["--home", str(tmp_path), "--log-level", "error", "stats", "overview"])

    out = json.loads(capsys.readouterr().out)
    assert code == 0
    assert out["total_pomodoros"] == 0
    assert out["register_days"] == 1


def test_export_command_writes_file(tmp_path) -> None:
    TaskRepository(build_context(tmp_path)).create("Plan week")
    target = tmp_path / "tasks.csv"

    code = main(["--home", str(tmp_path), "export", "tasks", "--format", "csv", "--output", str(target)])

    assert code == 0
    assert "Plan week" in target.read_text(encoding="utf-8")


def test_invalid_request_exits_with_error(tmp_path, capsys) -> None:
    code = main(["--home", str(tmp_path), "--log-level", "critical", "stats", "daily", "--start", "2026-10-05"])

    assert code == 1
    assert "error:" in capsys.readouterr().err
