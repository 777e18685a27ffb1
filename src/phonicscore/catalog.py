"""Load and validate the bundled phonics curriculum."""

from __future__ import annotations

import json
from datetime import date
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

from .errors import NotFoundError
from .models import CollectionItem, DailySet, EndlessTier, Stage, Word

CONTENT_PACKAGE = "phonicscore.content"
STAGE_WORD_COUNT = 15
COLLECTION_WORD_COUNT = 5
MIN_PHONEMES = 2
MAX_PHONEMES = 4


class Catalog:
    """Read-only view over stages, endless tiers, and daily sets."""

    def __init__(
        self,
        stages: list[Stage],
        endless_tiers: list[EndlessTier] | None = None,
        daily_sets: list[DailySet] | None = None,
    ) -> None:
        """Validate content and build lookup tables."""
        _validate_stages(stages)
        self._stages = tuple(stages)
        self._by_id = {stage.id: stage for stage in stages}
        self._endless_tiers = tuple(sorted(endless_tiers or [], key=lambda tier: tier.min_distance))
        self._daily_sets = tuple(daily_sets or [])

    def __len__(self) -> int:
        return len(self._stages)

    def list_stages(self) -> list[Stage]:
        """Return stages in definition order."""
        return list(self._stages)

    def get_stage(self, stage_id: int) -> Stage:
        """Return one stage or raise NotFoundError."""
        stage = self._by_id.get(stage_id)
        if stage is None:
            raise NotFoundError(stage_id)
        return stage

    def get_collection_items(self, stage_id: int) -> list[CollectionItem]:
        """Return the phoneme spawn sequence for the collection phase.

        Takes the first five words of the stage and flattens their phonemes
        word-major, so every phoneme of word 0 precedes those of word 1.
        """
        stage = self.get_stage(stage_id)
        items: list[CollectionItem] = []
        for word_index, word in enumerate(stage.words[:COLLECTION_WORD_COUNT]):
            for phoneme_index, phoneme in enumerate(word.phonemes):
                items.append(
                    CollectionItem(
                        phoneme=phoneme,
                        word_index=word_index,
                        phoneme_index=phoneme_index,
                        hint=word.hint,
                        word=word.text,
                    )
                )
        return items

    def get_battle_words(self, stage_id: int) -> list[Word]:
        """Return the full word list for the battle phase."""
        return list(self.get_stage(stage_id).words)

    def get_endless_words(self, distance: int) -> list[Word]:
        """Return every word from tiers already reached at this distance."""
        pool: list[Word] = []
        for tier in self._endless_tiers:
            if tier.min_distance <= distance:
                pool.extend(tier.words)
        return pool

    def get_daily_set(self, day: date) -> tuple[DailySet, list[Word]] | None:
        """Return the day's challenge set and the words it resolves to."""
        if not self._daily_sets:
            return None
        day_of_year = day.timetuple().tm_yday
        daily = self._daily_sets[day_of_year % len(self._daily_sets)]

        lookup: dict[str, Word] = {}
        for tier in self._endless_tiers:
            for word in tier.words:
                lookup.setdefault(word.text, word)
        for stage in self._stages:
            for word in stage.words:
                lookup.setdefault(word.text, word)
        words = [lookup[text] for text in daily.word_texts if text in lookup]
        return daily, words


def _word_from_dict(raw: dict[str, Any]) -> Word:
    """Build a word from raw JSON content."""
    text = str(raw.get("text", "")).strip()
    if not text:
        raise ValueError("Word entry has no text.")
    phonemes = tuple(str(item) for item in raw.get("phonemes", []))
    if not phonemes:
        raise ValueError(f"Word '{text}' has no phonemes.")
    if "".join(phonemes) != text:
        raise ValueError(f"Word '{text}' phonemes {list(phonemes)} do not spell the word.")
    damage_raw = raw.get("damage")
    return Word(
        text=text,
        phonemes=phonemes,
        hint=str(raw.get("hint", "")),
        damage=int(damage_raw) if damage_raw is not None else None,
    )


def _stage_from_dict(raw: dict[str, Any]) -> Stage:
    """Build a stage from raw JSON content."""
    return Stage(
        id=int(raw["id"]),
        name=str(raw["name"]),
        pattern=str(raw.get("pattern", "")),
        pattern_desc=str(raw.get("pattern_desc", "")),
        words=tuple(_word_from_dict(item) for item in raw.get("words", [])),
        theme=dict(raw.get("theme", {})),
    )


def _tier_from_dict(raw: dict[str, Any]) -> EndlessTier:
    return EndlessTier(
        label=str(raw["label"]),
        min_distance=int(raw.get("min_distance", 0)),
        words=tuple(_word_from_dict(item) for item in raw.get("words", [])),
    )


def _daily_set_from_dict(raw: dict[str, Any]) -> DailySet:
    return DailySet(
        theme=str(raw["theme"]),
        emoji=str(raw.get("emoji", "")),
        word_texts=tuple(str(item) for item in raw.get("words", [])),
    )


def load_catalog() -> Catalog:
    """Load the bundled catalog."""
    return _load_from_root(resources.files(CONTENT_PACKAGE))


def load_catalog_from_dir(path: Path) -> Catalog:
    """Load a catalog from a directory laid out like the bundled content."""
    return _load_from_root(path)


def _load_from_root(root: Traversable | Path) -> Catalog:
    stages_dir = root / "stages"
    entries = sorted(
        (entry for entry in stages_dir.iterdir() if entry.name.endswith(".json")),
        key=lambda entry: entry.name,
    )
    stages = [_stage_from_dict(_read_json(entry)) for entry in entries]
    stages.sort(key=lambda item: item.id)

    endless_tiers: list[EndlessTier] = []
    endless_file = root / "endless.json"
    if endless_file.is_file():
        endless_tiers = [_tier_from_dict(item) for item in _read_json(endless_file).get("tiers", [])]

    daily_sets: list[DailySet] = []
    daily_file = root / "daily.json"
    if daily_file.is_file():
        daily_sets = [_daily_set_from_dict(item) for item in _read_json(daily_file).get("sets", [])]

    return Catalog(stages, endless_tiers, daily_sets)


def _read_json(entry: Traversable | Path) -> dict[str, Any]:
    raw = json.loads(entry.read_text(encoding="utf-8-sig"))
    if not isinstance(raw, dict):
        raise ValueError(f"Content file '{entry.name}' root must be a JSON object.")
    return raw


def _validate_stages(stages: list[Stage]) -> None:
    """Validate stage ids are 1..N and every stage has well-formed words."""
    if not stages:
        raise ValueError("Catalog has no stages.")

    seen: set[int] = set()
    for stage in stages:
        if stage.id in seen:
            raise ValueError(f"Duplicate stage id: {stage.id}")
        seen.add(stage.id)
    expected = list(range(1, len(stages) + 1))
    if [stage.id for stage in stages] != expected:
        raise ValueError(f"Stage ids must run sequentially from 1, got {[stage.id for stage in stages]}.")

    for stage in stages:
        if len(stage.words) != STAGE_WORD_COUNT:
            raise ValueError(f"Stage {stage.id} has {len(stage.words)} words, expected {STAGE_WORD_COUNT}.")
        texts: set[str] = set()
        for word in stage.words:
            if word.text in texts:
                raise ValueError(f"Duplicate word '{word.text}' in stage {stage.id}.")
            texts.add(word.text)
            if not MIN_PHONEMES <= len(word.phonemes) <= MAX_PHONEMES:
                raise ValueError(
                    f"Word '{word.text}' in stage {stage.id} has {len(word.phonemes)} phonemes, "
                    f"expected {MIN_PHONEMES}-{MAX_PHONEMES}."
                )
            if "".join(word.phonemes) != word.text:
                raise ValueError(f"Word '{word.text}' in stage {stage.id} phonemes do not spell the word.")
            if word.damage is None or word.damage <= 0:
                raise ValueError(f"Word '{word.text}' in stage {stage.id} needs a positive damage value.")
