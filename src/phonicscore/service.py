"""Application service tying the curriculum catalog to player progress."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from . import __version__
from .catalog import Catalog, load_catalog
from .errors import StageLockedError
from .models import Stage, Word
from .progress import SCHEMA_VERSION, DailyStatus, ProgressState, ProgressStore, SaveResult, StageSummary
from .storage import StateBackend

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = 1
DIFFICULTY_LABELS = ("easy", "medium", "hard")


@dataclass(frozen=True)
class StageState:
    """Stage content plus the player's standing on it."""

    stage: Stage
    summary: StageSummary
    difficulty: int

    @property
    def difficulty_label(self) -> str:
        return DIFFICULTY_LABELS[self.difficulty]


@dataclass(frozen=True)
class ExportSummary:
    """Summary emitted by progress export/import operations."""

    path: Path
    stage_count: int
    currency_balance: int
    save: SaveResult | None = None


@dataclass(frozen=True)
class DailyChallenge:
    """Today's themed word set plus the player's standing on it."""

    theme: str
    emoji: str
    words: list[Word]
    status: DailyStatus


class GameService:
    """Coordinates catalog lookups and progress recording for one player."""

    def __init__(
        self,
        backend: StateBackend | None = None,
        catalog: Catalog | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize service with a persistence backend."""
        self.catalog = catalog if catalog is not None else load_catalog()
        self.progress = ProgressStore(backend, stage_count=len(self.catalog), clock=clock)

    def daily_challenge(self) -> DailyChallenge | None:
        """Return today's challenge, or None when the catalog has no daily sets."""
        status = self.progress.get_daily_status()
        found = self.catalog.get_daily_set(self.progress.today())
        if found is None:
            return None
        daily, words = found
        return DailyChallenge(theme=daily.theme, emoji=daily.emoji, words=words, status=status)

    def list_stage_states(self) -> list[StageState]:
        """Return every stage with its progress summary, in catalog order."""
        return [
            StageState(
                stage=stage,
                summary=self.progress.get_stage_summary(stage.id),
                difficulty=self.progress.get_difficulty_tier(stage.id),
            )
            for stage in self.catalog.list_stages()
        ]

    def begin_stage(self, stage_id: int) -> Stage:
        """Return a stage to play, refusing stages that are still locked."""
        stage = self.catalog.get_stage(stage_id)
        if not self.progress.is_unlocked(stage_id):
            raise StageLockedError(stage_id)
        return stage

    def export_progress(self, export_path: Path | str) -> ExportSummary:
        """Write the current progress state to a JSON file."""
        state = self.progress.state
        payload = {
            "format_version": EXPORT_FORMAT_VERSION,
            "exported_at": datetime.now(UTC).isoformat(),
            "source": {
                "app_version": __version__,
                "schema_version": SCHEMA_VERSION,
            },
            "progress": state.to_dict(),
        }

        path = Path(export_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Exported progress to %s", path)
        return ExportSummary(path=path, stage_count=len(state.stages), currency_balance=state.currency_balance)

    def import_progress(self, import_path: Path | str) -> ExportSummary:
        """Replace current progress with the contents of an export file."""
        path = Path(import_path)
        raw_obj: object = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw_obj, dict):
            raise ValueError("Import file root must be a JSON object.")
        raw = cast(dict[str, object], raw_obj)

        format_version = raw.get("format_version", 0)
        if not isinstance(format_version, int) or isinstance(format_version, bool):
            raise ValueError("Import file has invalid format_version.")
        if format_version > EXPORT_FORMAT_VERSION:
            raise ValueError(
                f"Import file format version {format_version} is newer than supported {EXPORT_FORMAT_VERSION}."
            )

        state = ProgressState.from_dict(raw.get("progress"), self.progress.stage_count)
        save = self.progress.replace_state(state)
        logger.debug("Imported progress from %s", path)
        return ExportSummary(
            path=path,
            stage_count=len(state.stages),
            currency_balance=state.currency_balance,
            save=save,
        )

    def close(self) -> None:
        """Close the backend if it holds resources."""
        close = getattr(self.progress.backend, "close", None)
        if callable(close):
            close()
