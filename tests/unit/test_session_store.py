"""Unit tests for session persistence, resume reconciliation, and best-effort saves."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dadeumi.io.storage import ArtifactStore
from dadeumi.models.datatypes import (
    ArtifactKey,
    AttemptRecord,
    ConversationMessage,
    Session,
    TranslationMetrics,
)
from dadeumi.pipeline.session_store import (
    HISTORY_JSON,
    HISTORY_TEXT,
    METRICS_JSON,
    SessionStore,
    render_transcript,
)
from dadeumi.pipeline.steps import build_default_steps


class _RecordingLogger:
    """Collect resume and save events emitted by the session store."""

    def __init__(self) -> None:
        self.events: list[tuple[str, tuple[object, ...]]] = []

    def log_session_unreadable(self, target: str, error_type: str) -> None:
        self.events.append(("unreadable", (target, error_type)))

    def log_session_resumed(self, *, claimed_step: int, resolved_step: int) -> None:
        self.events.append(("resumed", (claimed_step, resolved_step)))

    def log_history_save_failure(self, target: str, error_type: str) -> None:
        self.events.append(("save_failed", (target, error_type)))

    def log_best_effort_save(self, source: str | None, destination: str) -> None:
        self.events.append(("best_effort", (source, destination)))


_ALL_ARTIFACTS = {
    1: ["01_initial_analysis.txt"],
    2: ["02_expression_exploration.txt"],
    3: ["03_cultural_adaptation_discussion.txt"],
    4: ["04_title_inspiration_exploration.txt"],
    5: ["05_first_translation.txt"],
    6: ["06_self_critique.txt", "07_improved_translation.txt"],
    7: ["08_second_critique.txt", "09_further_improved_translation.txt"],
    8: ["10_final_review.txt", "11_final_translation.txt"],
}


def _write_steps(store: ArtifactStore, last_step: int) -> None:
    """Write every artifact for steps 1..last_step."""

    for step_id in range(1, last_step + 1):
        for filename in _ALL_ARTIFACTS[step_id]:
            store.save_text(filename, f"content of {filename}")


def _session_store(tmp_path: Path, logger: _RecordingLogger | None = None) -> SessionStore:
    steps = build_default_steps()
    return SessionStore(ArtifactStore(tmp_path), steps, logger)  # type: ignore[arg-type]


def test_reconcile_decrements_when_claimed_step_artifact_is_empty(tmp_path: Path) -> None:
    """A counter of 6 with an empty `07_improved_translation.txt` should resolve to 5."""

    store = ArtifactStore(tmp_path)
    _write_steps(store, 5)
    store.save_text("06_self_critique.txt", "critique")
    store.save_text("07_improved_translation.txt", "")

    assert _session_store(tmp_path).reconcile_step_counter(6) == 5


def test_reconcile_advances_when_next_step_was_written_before_crash(tmp_path: Path) -> None:
    """Artifacts written for the next step should count even if the counter was not saved."""

    store = ArtifactStore(tmp_path)
    _write_steps(store, 7)

    assert _session_store(tmp_path).reconcile_step_counter(6) == 7


def test_reconcile_moves_at_most_one_step(tmp_path: Path) -> None:
    """Reconciliation should never jump more than one step in either direction."""

    store = ArtifactStore(tmp_path)
    _write_steps(store, 8)
    session_store = _session_store(tmp_path)

    assert session_store.reconcile_step_counter(3) == 4
    assert session_store.reconcile_step_counter(8) == 8
    assert session_store.reconcile_step_counter(0) == 1
    assert session_store.reconcile_step_counter(99) == 9


def test_reconcile_keeps_consistent_counter(tmp_path: Path) -> None:
    """A counter matching the artifacts on disk should be kept."""

    store = ArtifactStore(tmp_path)
    _write_steps(store, 4)

    assert _session_store(tmp_path).reconcile_step_counter(4) == 4
    assert _session_store(tmp_path / "empty").reconcile_step_counter(0) == 0


def test_save_and_load_round_trip_session_state(tmp_path: Path) -> None:
    """Saved sessions should load with messages, tokens, attempts, and metrics restored."""

    store = ArtifactStore(tmp_path)
    _write_steps(store, 5)
    logger = _RecordingLogger()
    session_store = _session_store(tmp_path, logger)
    session = Session(
        conversation=[
            ConversationMessage("system", "You are a translator."),
            ConversationMessage("user", "Translate."),
            ConversationMessage("assistant", "<first_translation>번역</first_translation>"),
        ],
        step_counter=5,
        total_input_tokens=1200,
        total_output_tokens=800,
        estimated_cost=0.011,
        source_metrics=TranslationMetrics(source_word_count=10, target_word_count=10),
        metrics={ArtifactKey.FIRST_TRANSLATION: TranslationMetrics(target_word_count=8)},
        attempts=[
            AttemptRecord(5, "Step 5 - First Translation", 1, False, "rate_limited", "429"),
            AttemptRecord(5, "Step 5 - First Translation", 2, True),
        ],
        source_hash="ab12cd",
    )

    assert session_store.save(session, "Step 5 - First Translation - Complete") is True
    assert session_store.save_metrics(session) is True
    loaded = session_store.load()

    assert loaded is not None
    assert loaded.conversation == session.conversation
    assert loaded.step_counter == 5
    assert loaded.total_tokens == 2000
    assert loaded.estimated_cost == pytest.approx(0.011)
    assert [record.succeeded for record in loaded.attempts] == [False, True]
    assert loaded.attempts[0].failure_kind == "rate_limited"
    assert loaded.source_hash == "ab12cd"
    assert loaded.source_metrics == session.source_metrics
    assert loaded.metrics[ArtifactKey.FIRST_TRANSLATION].target_word_count == 8
    assert loaded.output_files[ArtifactKey.FIRST_TRANSLATION] == (
        tmp_path / "05_first_translation.txt"
    )
    assert loaded.translation_steps[-1] == "Step 5 - First Translation"
    assert ("resumed", (5, 5)) in logger.events


def test_snapshot_json_uses_documented_metadata_keys(tmp_path: Path) -> None:
    """The JSON snapshot should expose camelCase metadata and the full conversation."""

    session_store = _session_store(tmp_path)
    session = Session(
        conversation=[ConversationMessage("system", "sys")],
        total_input_tokens=3,
        total_output_tokens=4,
    )

    session_store.save(session, "Initial system prompt")
    payload = json.loads((tmp_path / HISTORY_JSON).read_text(encoding="utf-8"))

    assert set(payload["metadata"]) == {
        "timestamp",
        "label",
        "step",
        "totalTokens",
        "totalInputTokens",
        "totalOutputTokens",
        "estimatedCost",
        "sourceHash",
    }
    assert payload["metadata"]["label"] == "Initial system prompt"
    assert payload["metadata"]["totalTokens"] == 7
    assert payload["conversation"] == [{"role": "system", "content": "sys"}]
    assert (tmp_path / HISTORY_TEXT).is_file()


def test_load_returns_none_for_missing_or_corrupt_snapshot(tmp_path: Path) -> None:
    """Missing or undecodable snapshots should start a fresh session."""

    logger = _RecordingLogger()
    session_store = _session_store(tmp_path, logger)
    assert session_store.load() is None

    (tmp_path / HISTORY_JSON).write_text("{not json", encoding="utf-8")

    assert session_store.load() is None
    assert logger.events == [("unreadable", (HISTORY_JSON, "JSONDecodeError"))]


def test_load_ignores_corrupt_metrics_file(tmp_path: Path) -> None:
    """A corrupt metrics file should not prevent resuming the session."""

    session_store = _session_store(tmp_path)
    session_store.save(Session(conversation=[ConversationMessage("system", "sys")]), "init")
    (tmp_path / METRICS_JSON).write_text("[[[", encoding="utf-8")

    loaded = session_store.load()

    assert loaded is not None
    assert loaded.metrics == {}


def test_save_reports_failure_without_raising(tmp_path: Path) -> None:
    """History write failures should be logged and reported, not raised."""

    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file", encoding="utf-8")
    logger = _RecordingLogger()
    store = ArtifactStore(blocker / "intermediates")
    session_store = SessionStore(store, build_default_steps(), logger)  # type: ignore[arg-type]

    assert session_store.save(Session(), "label") is False
    assert logger.events[0][0] == "save_failed"
    assert logger.events[0][1][0] == HISTORY_JSON


def test_render_transcript_formats_header_messages_and_attempts() -> None:
    """The transcript should show totals, role blocks, and the attempt log."""

    session = Session(
        conversation=[
            ConversationMessage("system", "You are a translator."),
            ConversationMessage("user", "Translate."),
        ],
        step_counter=2,
        total_input_tokens=1234,
        total_output_tokens=1000,
        estimated_cost=0.5,
        attempts=[
            AttemptRecord(
                step_id=3,
                label="Step 3 - Cultural Adaptation Discussion",
                attempt=1,
                succeeded=False,
                failure_kind="timeout",
                detail="timed out",
                timestamp="2024-01-01T00:00:00+00:00",
            )
        ],
    )

    text = render_transcript(session, "Step 2 - Expression Exploration - Complete", "T0")

    assert text.startswith("# Translation Conversation History\n\nLast update: T0\n")
    assert "Step: 2\n" in text
    assert "Total tokens used: 2,234\n" in text
    assert "Estimated total cost: $0.5000\n" in text
    assert "=" * 80 in text
    rule = "-" * 80
    assert f"## SYSTEM:\n\nYou are a translator.\n\n{rule}\n\n## USER:\n\nTranslate." in text
    assert (
        "- [2024-01-01T00:00:00+00:00] Step 3 - Cultural Adaptation Discussion - Attempt 1: "
        "error (timeout) - timed out"
    ) in text


def test_latest_deliverable_prefers_most_refined_artifact(tmp_path: Path) -> None:
    """With 05, 07, 09 and 11 on disk, the final translation should be selected."""

    store = ArtifactStore(tmp_path / "intermediates")
    _write_steps(store, 8)
    session_store = SessionStore(store, build_default_steps())

    artifact = session_store.latest_deliverable()

    assert artifact is not None
    assert artifact.key is ArtifactKey.FINAL_TRANSLATION
    assert artifact.content == "content of 11_final_translation.txt"


def test_save_best_effort_final_copies_latest_deliverable(tmp_path: Path) -> None:
    """Best-effort saves should copy the most refined deliverable to the destination."""

    store = ArtifactStore(tmp_path / "intermediates")
    _write_steps(store, 6)
    store.save_text("09_further_improved_translation.txt", "   ")
    logger = _RecordingLogger()
    session_store = SessionStore(store, build_default_steps(), logger)  # type: ignore[arg-type]
    destination = tmp_path / "story-Korean.txt"

    assert session_store.save_best_effort_final(destination) == destination
    assert destination.read_text(encoding="utf-8") == "content of 07_improved_translation.txt"
    assert logger.events == [
        ("best_effort", ("07_improved_translation.txt", str(destination)))
    ]


def test_save_best_effort_final_without_deliverable_returns_none(tmp_path: Path) -> None:
    """No deliverable on disk should produce no output file."""

    store = ArtifactStore(tmp_path / "intermediates")
    _write_steps(store, 4)
    session_store = SessionStore(store, build_default_steps())
    destination = tmp_path / "story-Korean.txt"

    assert session_store.save_best_effort_final(destination) is None
    assert not destination.exists()
