from pathlib import Path
from typing import Any

import phonicscore.main as main
from phonicscore.service import GameService
from phonicscore.storage import MemoryBackend


def _patch_service(monkeypatch: Any, backend: MemoryBackend) -> None:
    monkeypatch.setattr(main, "_service", lambda db_path: GameService(backend))


def test_stages_command_lists_catalog(monkeypatch: Any) -> None:
    _patch_service(monkeypatch, MemoryBackend())
    outputs: list[str] = []
    assert main.run(["stages"], outputs.append) == 0
    assert any("Rice Paddy Valley" in line for line in outputs)
    assert any("Consonant Blends" in line for line in outputs)


def test_status_is_default_command(monkeypatch: Any) -> None:
    _patch_service(monkeypatch, MemoryBackend())
    outputs: list[str] = []
    assert main.run([], outputs.append) == 0
    assert any("open" in line and "Rice Paddy Valley" in line for line in outputs)
    assert any("locked" in line and "Bamboo Dojo Forest" in line for line in outputs)
    assert any(line.startswith("\nCurrency: 0") for line in outputs)


def test_status_notes_repaired_save(monkeypatch: Any) -> None:
    _patch_service(monkeypatch, MemoryBackend(b"corrupt"))
    outputs: list[str] = []
    assert main.run(["status"], outputs.append) == 0
    assert any("unreadable" in line for line in outputs)


def test_words_command_marks_mastered(monkeypatch: Any) -> None:
    backend = MemoryBackend()
    seed = GameService(backend)
    seed.progress.record_blend_attempt(1, "cat", True)
    seed.progress.record_blend_attempt(1, "cat", True)
    _patch_service(monkeypatch, backend)

    outputs: list[str] = []
    assert main.run(["words", "1"], outputs.append) == 0
    assert any(line.startswith("* cat") and "c-a-t" in line for line in outputs)
    assert any(line.startswith("  bat") for line in outputs)


def test_words_command_unknown_stage(monkeypatch: Any) -> None:
    _patch_service(monkeypatch, MemoryBackend())
    outputs: list[str] = []
    assert main.run(["words", "12"], outputs.append) == 1
    assert any("Unknown stage id: 12" in line for line in outputs)


def test_reset_requires_confirmation(monkeypatch: Any) -> None:
    backend = MemoryBackend()
    GameService(backend).progress.add_currency(40)
    _patch_service(monkeypatch, backend)

    outputs: list[str] = []
    assert main.run(["reset"], outputs.append) == 1
    assert any("Refusing to reset" in line for line in outputs)
    assert GameService(backend).progress.get_currency() == 40

    outputs = []
    assert main.run(["reset", "--yes"], outputs.append) == 0
    assert "Progress reset." in outputs
    assert GameService(backend).progress.get_currency() == 0


def test_export_and_import_commands(monkeypatch: Any, tmp_path: Path) -> None:
    backend = MemoryBackend()
    GameService(backend).progress.add_currency(25)
    _patch_service(monkeypatch, backend)
    path = tmp_path / "out.json"

    outputs: list[str] = []
    assert main.run(["export", str(path)], outputs.append) == 0
    assert path.exists()

    target = MemoryBackend()
    _patch_service(monkeypatch, target)
    assert main.run(["import", str(path)], outputs.append) == 0
    assert any("Imported 6 stages" in line for line in outputs)
    assert GameService(target).progress.get_currency() == 25


def test_import_command_reports_bad_file(monkeypatch: Any, tmp_path: Path) -> None:
    _patch_service(monkeypatch, MemoryBackend())
    path = tmp_path / "bad.json"
    path.write_text("[]", encoding="utf-8")
    outputs: list[str] = []
    assert main.run(["import", str(path)], outputs.append) == 1
    assert any(line.startswith("Error:") for line in outputs)


def test_run_with_real_database(tmp_path: Path) -> None:
    db_path = tmp_path / "cli" / "progress.db"
    outputs: list[str] = []
    assert main.run(["--db", str(db_path), "status"], outputs.append) == 0
    assert main.run(["--db", str(db_path), "reset", "--yes"], outputs.append) == 0
    assert db_path.exists()


def test_main_entry_exits(monkeypatch: Any) -> None:
    monkeypatch.setattr(main, "run", lambda argv=None: 0)
    try:
        main.main_entry()
    except SystemExit as exc:
        assert exc.code == 0


def test_status_reports_achievements(monkeypatch: Any) -> None:
    backend = MemoryBackend()
    GameService(backend).progress.record_blend_attempt(1, "cat", True)
    _patch_service(monkeypatch, backend)
    outputs: list[str] = []
    assert main.run(["status"], outputs.append) == 0
    assert "Achievements: 1/17" in outputs


def test_daily_command_shows_challenge_and_streaks(monkeypatch: Any) -> None:
    backend = MemoryBackend()
    _patch_service(monkeypatch, backend)
    outputs: list[str] = []
    assert main.run(["daily"], outputs.append) == 0
    assert any("0 words so far" in line for line in outputs)
    assert "Daily streak: 0  Login streak: 1" in outputs
    assert backend.save_count == 1
