"""Artifact storage abstraction.

Responsibilities:
- Provide deterministic filesystem storage for text and JSON artifacts.
- Make text writes atomic so a crash never leaves a half-written artifact.
- Offer lookup methods used by dependency checks and resume flows.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import re
import tempfile

_STEP_ARTIFACT_PATTERN = re.compile(r"^\d{2}_.+\.txt$")


class ArtifactStore:
    """Filesystem-backed artifact store rooted at one intermediates directory."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with a root directory."""

        self.root = root

    def path_for(self, relative_path: Path | str) -> Path:
        """Return the absolute location of an artifact."""

        return self.root / relative_path

    def save_text(self, relative_path: Path | str, content: str) -> Path:
        """Atomically save text content and return final path."""

        path = self.path_for(relative_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_descriptor, temp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        return path

    def save_json(self, relative_path: Path | str, payload: object) -> Path:
        """Save JSON-serializable payload and return final path."""

        return self.save_text(
            relative_path,
            json.dumps(payload, ensure_ascii=False, indent=2),
        )

    def load_text(self, relative_path: Path | str) -> str:
        """Load text content from artifact storage."""

        return self.path_for(relative_path).read_text(encoding="utf-8")

    def load_json(self, relative_path: Path | str) -> object:
        """Load and decode a JSON artifact."""

        return json.loads(self.load_text(relative_path))

    def exists(self, relative_path: Path | str) -> bool:
        """Return whether the given artifact exists."""

        return self.path_for(relative_path).exists()

    def is_non_empty(self, relative_path: Path | str) -> bool:
        """Return whether an artifact exists and holds non-whitespace content."""

        path = self.path_for(relative_path)
        if not path.is_file():
            return False
        try:
            return bool(path.read_text(encoding="utf-8").strip())
        except (OSError, UnicodeDecodeError):
            return False

    def list_step_artifacts(self) -> list[str]:
        """Return sorted `NN_<slug>.txt` artifact filenames present in the store."""

        if not self.root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.root.iterdir()
            if entry.is_file() and _STEP_ARTIFACT_PATTERN.match(entry.name)
        )
