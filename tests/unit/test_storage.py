"""Unit tests for filesystem artifact storage."""

from __future__ import annotations

from pathlib import Path

import pytest

from dadeumi.io.storage import ArtifactStore


def test_save_text_creates_parent_dirs_and_leaves_no_temp_files(tmp_path: Path) -> None:
    """Atomic text writes should create directories and clean up temporary files."""

    store = ArtifactStore(tmp_path / "intermediates")

    path = store.save_text("05_first_translation.txt", "첫 번역")

    assert path == tmp_path / "intermediates" / "05_first_translation.txt"
    assert store.load_text("05_first_translation.txt") == "첫 번역"
    assert [entry.name for entry in path.parent.iterdir()] == ["05_first_translation.txt"]


def test_save_text_overwrites_existing_content(tmp_path: Path) -> None:
    """Saving twice should replace the previous artifact content."""

    store = ArtifactStore(tmp_path)
    store.save_text("01_initial_analysis.txt", "draft")
    store.save_text("01_initial_analysis.txt", "final")

    assert store.load_text("01_initial_analysis.txt") == "final"


def test_save_text_removes_temp_file_when_write_fails(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A failed replace should propagate and leave neither artifact nor temp file."""

    store = ArtifactStore(tmp_path)

    def _failing_replace(source: str, destination: Path) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("dadeumi.io.storage.os.replace", _failing_replace)

    with pytest.raises(OSError, match="disk full"):
        store.save_text("07_improved_translation.txt", "content")

    assert list(tmp_path.iterdir()) == []


def test_save_json_round_trips_unicode(tmp_path: Path) -> None:
    """JSON artifacts should keep non-ASCII text readable on disk."""

    store = ArtifactStore(tmp_path)
    store.save_json("history.json", {"content": "다듬이"})

    assert "다듬이" in (tmp_path / "history.json").read_text(encoding="utf-8")
    assert store.load_json("history.json") == {"content": "다듬이"}


def test_is_non_empty_treats_whitespace_and_missing_files_as_empty(tmp_path: Path) -> None:
    """Completion checks should ignore missing and whitespace-only artifacts."""

    store = ArtifactStore(tmp_path)
    store.save_text("06_critique.txt", " \n\t")
    store.save_text("07_improved_translation.txt", "text")

    assert store.is_non_empty("06_critique.txt") is False
    assert store.is_non_empty("08_second_critique.txt") is False
    assert store.is_non_empty("07_improved_translation.txt") is True
    assert store.exists("06_critique.txt") is True


def test_list_step_artifacts_returns_sorted_step_files_only(tmp_path: Path) -> None:
    """Only `NN_<slug>.txt` files should be listed, in numeric order."""

    store = ArtifactStore(tmp_path)
    assert store.list_step_artifacts() == []

    store.save_text("07_improved_translation.txt", "b")
    store.save_text("01_initial_analysis.txt", "a")
    store.save_text("conversation_history.txt", "c")
    store.save_json("translation_metrics.json", {})

    assert store.list_step_artifacts() == [
        "01_initial_analysis.txt",
        "07_improved_translation.txt",
    ]
