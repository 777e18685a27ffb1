"""Core domain models for phonics curriculum content."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Word:
    """One blendable target word."""

    text: str
    phonemes: tuple[str, ...]
    hint: str
    damage: int | None = None


@dataclass(frozen=True)
class Stage:
    """One themed curriculum unit with its ordered target words."""

    id: int
    name: str
    pattern: str
    pattern_desc: str
    words: tuple[Word, ...]
    theme: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class CollectionItem:
    """One phoneme pickup in the collection phase spawn sequence."""

    phoneme: str
    word_index: int
    phoneme_index: int
    hint: str
    word: str


@dataclass(frozen=True)
class EndlessTier:
    """Word pool that opens once the runner passes a distance."""

    label: str
    min_distance: int
    words: tuple[Word, ...]


@dataclass(frozen=True)
class Achievement:
    """One earnable badge."""

    id: str
    name: str
    description: str
    emoji: str


@dataclass(frozen=True)
class DailySet:
    """Themed daily challenge word list."""

    theme: str
    emoji: str
    word_texts: tuple[str, ...]
