"""Per-player progress state and the store that owns it."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Any, Literal

from . import achievements
from .errors import PersistenceError
from .storage import MemoryBackend, StateBackend

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3
DEFAULT_STAGE_COUNT = 6
MASTERY_THRESHOLD = 2
MAX_STARS = 3
MIN_DIFFICULTY_SAMPLES = 5
DAILY_BASE_REWARD = 150
DAILY_STREAK_BONUS = 25
LOGIN_BASE_REWARD = 50
LOGIN_STREAK_BONUS = 25
LOGIN_BONUS_CAP = 6

LoadStatus = Literal["loaded", "fresh", "repaired"]


@dataclass
class WordTally:
    """Correct/wrong blend counters for one word."""

    correct: int = 0
    wrong: int = 0


@dataclass
class WordAttemptCounts:
    """Word text -> tally mapping that creates entries on first access."""

    entries: dict[str, WordTally] = field(default_factory=dict)

    def tally(self, word: str) -> WordTally:
        """Return the tally for a word, inserting an empty one if absent."""
        entry = self.entries.get(word)
        if entry is None:
            entry = WordTally()
            self.entries[word] = entry
        return entry

    def get(self, word: str) -> WordTally | None:
        return self.entries.get(word)

    def __contains__(self, word: object) -> bool:
        return word in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class StageProgress:
    """Mutable progress counters for one stage."""

    unlocked: bool = False
    stars: int = 0
    best_score: int = 0
    attempts: int = 0
    total_blend_attempts: int = 0
    correct_blend_attempts: int = 0
    mastered_words: list[str] = field(default_factory=list)
    word_attempts: WordAttemptCounts = field(default_factory=WordAttemptCounts)
    collected_item_count: int = 0
    completed_at: str | None = None

    def accuracy(self) -> float:
        """Correct share of blend attempts, 0 when nothing was attempted."""
        if self.total_blend_attempts == 0:
            return 0.0
        return self.correct_blend_attempts / self.total_blend_attempts

    def to_dict(self) -> dict[str, Any]:
        return {
            "unlocked": self.unlocked,
            "stars": self.stars,
            "bestScore": self.best_score,
            "attempts": self.attempts,
            "totalBlendAttempts": self.total_blend_attempts,
            "correctBlendAttempts": self.correct_blend_attempts,
            "masteredWords": list(self.mastered_words),
            "wordAttemptCounts": {
                word: {"correct": tally.correct, "wrong": tally.wrong}
                for word, tally in self.word_attempts.entries.items()
            },
            "collectedItemCount": self.collected_item_count,
            "completedAt": self.completed_at,
        }

    @classmethod
    def from_dict(cls, raw: object) -> StageProgress:
        """Build stage progress from persisted data, repairing bad fields."""
        if not isinstance(raw, dict):
            return cls()

        total = _non_negative(raw.get("totalBlendAttempts"))
        correct = min(_non_negative(raw.get("correctBlendAttempts")), total)

        word_attempts = WordAttemptCounts()
        counts_raw = raw.get("wordAttemptCounts")
        if isinstance(counts_raw, dict):
            for word, tally_raw in counts_raw.items():
                if not isinstance(tally_raw, dict):
                    continue
                word_attempts.entries[str(word)] = WordTally(
                    correct=_non_negative(tally_raw.get("correct")),
                    wrong=_non_negative(tally_raw.get("wrong")),
                )

        return cls(
            unlocked=_strict_bool(raw.get("unlocked")),
            stars=min(_non_negative(raw.get("stars")), MAX_STARS),
            best_score=_non_negative(raw.get("bestScore")),
            attempts=_non_negative(raw.get("attempts")),
            total_blend_attempts=total,
            correct_blend_attempts=correct,
            mastered_words=_string_list(raw.get("masteredWords")),
            word_attempts=word_attempts,
            collected_item_count=_non_negative(raw.get("collectedItemCount")),
            completed_at=_optional_str(raw.get("completedAt")),
        )


@dataclass
class ProgressState:
    """Whole persisted progress record for one player."""

    schema_version: int = SCHEMA_VERSION
    currency_balance: int = 0
    lifetime_currency: int = 0
    total_words_mastered: int = 0
    total_perfect_blends: int = 0
    endless_high_score: int = 0
    endless_best_distance: int = 0
    endless_total_runs: int = 0
    best_combo: int = 0
    total_run_distance: int = 0
    achievements: list[str] = field(default_factory=list)
    new_achievements: list[str] = field(default_factory=list)
    last_daily_date: str | None = None
    daily_completed: bool = False
    daily_progress: int = 0
    daily_streak: int = 0
    last_login_date: str | None = None
    login_streak: int = 0
    login_reward_claimed: bool = False
    stages: dict[int, StageProgress] = field(default_factory=dict)

    @classmethod
    def fresh(cls, stage_count: int = DEFAULT_STAGE_COUNT) -> ProgressState:
        """Return default state with only stage 1 unlocked."""
        stages = {stage_id: StageProgress(unlocked=stage_id == 1) for stage_id in range(1, stage_count + 1)}
        return cls(stages=stages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "currencyBalance": self.currency_balance,
            "lifetimeCurrency": self.lifetime_currency,
            "totalWordsMastered": self.total_words_mastered,
            "totalPerfectBlends": self.total_perfect_blends,
            "endlessHighScore": self.endless_high_score,
            "endlessBestDistance": self.endless_best_distance,
            "endlessTotalRuns": self.endless_total_runs,
            "bestCombo": self.best_combo,
            "totalRunDistance": self.total_run_distance,
            "achievements": list(self.achievements),
            "newAchievements": list(self.new_achievements),
            "lastDailyDate": self.last_daily_date,
            "dailyCompleted": self.daily_completed,
            "dailyProgress": self.daily_progress,
            "dailyStreak": self.daily_streak,
            "lastLoginDate": self.last_login_date,
            "loginStreak": self.login_streak,
            "loginRewardClaimed": self.login_reward_claimed,
            "stages": {str(stage_id): stage.to_dict() for stage_id, stage in sorted(self.stages.items())},
        }

    @classmethod
    def from_dict(cls, raw: object, stage_count: int = DEFAULT_STAGE_COUNT) -> ProgressState:
        """Build state from persisted data.

        Raises ValueError when the data cannot be used at all: wrong root type,
        a schema version other than SCHEMA_VERSION, or no stage mapping.
        Stage ids missing from the mapping get default entries.
        """
        if not isinstance(raw, dict):
            raise ValueError("Progress root must be a JSON object.")
        version = _coerce_int(raw.get("schemaVersion"))
        if version != SCHEMA_VERSION:
            raise ValueError(f"Unsupported progress schema version {version!r}, expected {SCHEMA_VERSION}.")
        stages_raw = raw.get("stages")
        if not isinstance(stages_raw, dict):
            raise ValueError("Progress data has no stage mapping.")

        stages: dict[int, StageProgress] = {}
        for key, value in stages_raw.items():
            stage_id = _coerce_int(key)
            if stage_id is None or stage_id < 1:
                continue
            stages[stage_id] = StageProgress.from_dict(value)
        for stage_id in range(1, stage_count + 1):
            if stage_id not in stages:
                stages[stage_id] = StageProgress(unlocked=stage_id == 1)

        earned = _string_list(raw.get("achievements"))
        currency = _non_negative(raw.get("currencyBalance"))
        return cls(
            schema_version=SCHEMA_VERSION,
            currency_balance=currency,
            lifetime_currency=max(_non_negative(raw.get("lifetimeCurrency")), currency),
            total_words_mastered=_non_negative(raw.get("totalWordsMastered")),
            total_perfect_blends=_non_negative(raw.get("totalPerfectBlends")),
            endless_high_score=_non_negative(raw.get("endlessHighScore")),
            endless_best_distance=_non_negative(raw.get("endlessBestDistance")),
            endless_total_runs=_non_negative(raw.get("endlessTotalRuns")),
            best_combo=_non_negative(raw.get("bestCombo")),
            total_run_distance=_non_negative(raw.get("totalRunDistance")),
            achievements=earned,
            new_achievements=[item for item in _string_list(raw.get("newAchievements")) if item in earned],
            last_daily_date=_optional_str(raw.get("lastDailyDate")),
            daily_completed=_strict_bool(raw.get("dailyCompleted")),
            daily_progress=_non_negative(raw.get("dailyProgress")),
            daily_streak=_non_negative(raw.get("dailyStreak")),
            last_login_date=_optional_str(raw.get("lastLoginDate")),
            login_streak=_non_negative(raw.get("loginStreak")),
            login_reward_claimed=_strict_bool(raw.get("loginRewardClaimed")),
            stages=stages,
        )


@dataclass(frozen=True)
class SaveResult:
    """Outcome of persisting state after a mutation."""

    saved: bool
    error: PersistenceError | None = None

    def __bool__(self) -> bool:
        return self.saved


@dataclass(frozen=True)
class StageSummary:
    """Display projection of one stage's progress."""

    unlocked: bool
    stars: int
    best_score: int
    mastered_count: int
    attempts: int


@dataclass(frozen=True)
class StageCompletion:
    """What a stage completion changed."""

    stars: int
    currency_awarded: int
    unlocked_stage_id: int | None
    save: SaveResult


@dataclass(frozen=True)
class EndlessRecords:
    """Best endless-mode results so far."""

    high_score: int
    best_distance: int
    total_runs: int
    best_combo: int = 0
    total_distance: int = 0


@dataclass(frozen=True)
class DailyStatus:
    """Today's daily challenge and login streak counters."""

    date: str
    progress: int
    completed: bool
    streak: int
    login_streak: int
    login_reward_claimed: bool


class ProgressStore:
    """Authoritative holder of one player's progress state."""

    def __init__(
        self,
        backend: StateBackend | None = None,
        *,
        stage_count: int = DEFAULT_STAGE_COUNT,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Load persisted state, falling back to a fresh one when unusable."""
        if stage_count < 1:
            raise ValueError("stage_count must be at least 1.")
        self._backend: StateBackend = backend if backend is not None else MemoryBackend()
        self.stage_count = stage_count
        self._clock = clock or _utc_now
        self.last_save: SaveResult | None = None
        self.load_status: LoadStatus
        self.load_error: Exception | None = None
        self.state = self._load()

    @property
    def backend(self) -> StateBackend:
        return self._backend

    def today(self) -> date:
        return self._clock().date()

    def _load(self) -> ProgressState:
        try:
            raw = self._backend.load()
        except Exception as exc:
            error = exc if isinstance(exc, PersistenceError) else PersistenceError(str(exc))
            logger.warning("Could not read saved progress, starting fresh: %s", error)
            self.load_status = "repaired"
            self.load_error = error
            return ProgressState.fresh(self.stage_count)

        if raw is None:
            logger.debug("No saved progress found, starting fresh")
            self.load_status = "fresh"
            return ProgressState.fresh(self.stage_count)

        try:
            state = ProgressState.from_dict(json.loads(raw.decode("utf-8")), self.stage_count)
        except (UnicodeDecodeError, ValueError, OverflowError, RecursionError) as exc:
            logger.warning("Discarding unusable saved progress: %s", exc)
            self.load_status = "repaired"
            self.load_error = exc
            return ProgressState.fresh(self.stage_count)

        logger.debug("Loaded saved progress for %d stages", len(state.stages))
        self.load_status = "loaded"
        return state

    def _save(self) -> SaveResult:
        """Persist the whole state; failures leave the in-memory state in charge."""
        payload = json.dumps(self.state.to_dict(), ensure_ascii=False).encode("utf-8")
        try:
            self._backend.save(payload)
        except Exception as exc:
            error = exc if isinstance(exc, PersistenceError) else PersistenceError(str(exc))
            logger.warning("Progress not saved: %s", error)
            result = SaveResult(saved=False, error=error)
        else:
            result = SaveResult(saved=True)
        self.last_save = result
        return result

    def _entry(self, stage_id: int) -> StageProgress:
        """Return the stored entry for a stage, creating a locked one if absent.

        Ids below 1 can never be persisted, so they get a detached entry.
        """
        entry = self.state.stages.get(stage_id)
        if entry is None:
            entry = StageProgress()
            if stage_id >= 1:
                self.state.stages[stage_id] = entry
        return entry

    def _award(self, amount: int) -> None:
        self.state.currency_balance += amount
        self.state.lifetime_currency += amount
        if self.state.lifetime_currency >= achievements.CURRENCY_THRESHOLD:
            self._grant(achievements.CURRENCY_500)

    def _grant(self, achievement_id: str) -> bool:
        """Record an achievement in memory; False if it was already earned."""
        if achievement_id in self.state.achievements:
            return False
        self.state.achievements.append(achievement_id)
        self.state.new_achievements.append(achievement_id)
        logger.debug("Achievement unlocked: %s", achievement_id)
        return True

    def _grant_thresholds(self, value: int, thresholds: tuple[tuple[int, str], ...]) -> None:
        for threshold, achievement_id in thresholds:
            if value >= threshold:
                self._grant(achievement_id)

    def _roll_over_day(self) -> bool:
        """Start a new daily challenge and login day when the date has moved on.

        Completing the previous day's challenge extends the daily streak,
        anything else breaks it. Logins on consecutive days extend the login
        streak. Returns whether anything changed.
        """
        today = self.today()
        today_key = today.isoformat()
        state = self.state
        changed = False

        if state.last_daily_date != today_key:
            if state.last_daily_date is not None:
                if state.daily_completed:
                    state.daily_streak += 1
                    self._grant_thresholds(state.daily_streak, achievements.DAILY_STREAK_THRESHOLDS)
                else:
                    state.daily_streak = 0
            state.last_daily_date = today_key
            state.daily_completed = False
            state.daily_progress = 0
            changed = True

        if state.last_login_date != today_key:
            yesterday = (today - timedelta(days=1)).isoformat()
            state.login_streak = state.login_streak + 1 if state.last_login_date == yesterday else 1
            state.last_login_date = today_key
            state.login_reward_claimed = False
            changed = True

        return changed

    def start_session(self) -> SaveResult | None:
        """Apply the day rollover; saves only when the date changed."""
        if self._roll_over_day():
            return self._save()
        return None

    def get_stage_progress(self, stage_id: int) -> StageProgress:
        """Return stored progress, or a locked default for unknown ids."""
        entry = self.state.stages.get(stage_id)
        return entry if entry is not None else StageProgress()

    def is_unlocked(self, stage_id: int) -> bool:
        return self.get_stage_progress(stage_id).unlocked

    def unlock_stage(self, stage_id: int) -> SaveResult:
        self._entry(stage_id).unlocked = True
        return self._save()

    def record_collection_complete(self, stage_id: int, items_collected: int) -> SaveResult:
        """Keep the best collection-phase pickup count."""
        entry = self._entry(stage_id)
        entry.collected_item_count = max(entry.collected_item_count, items_collected)
        return self._save()

    def record_blend_attempt(self, stage_id: int, word: str, success: bool, perfect: bool = False) -> SaveResult:
        """Count one blend attempt and promote the word to mastered at two correct blends.

        Wrong attempts in between do not delay mastery, and mastery is never revoked.
        A perfect blend only counts when it also succeeded.
        """
        entry = self._entry(stage_id)
        tally = entry.word_attempts.tally(word)
        entry.total_blend_attempts += 1
        if success:
            entry.correct_blend_attempts += 1
            self.state.total_words_mastered += 1
            if perfect:
                self.state.total_perfect_blends += 1
            tally.correct += 1
            if tally.correct >= MASTERY_THRESHOLD and word not in entry.mastered_words:
                entry.mastered_words.append(word)
            self._grant_thresholds(self.state.total_words_mastered, achievements.WORD_THRESHOLDS)
        else:
            tally.wrong += 1
            self._grant(achievements.SLIP_RECOVER)
        return self._save()

    def record_perfect_blends(self, count: int) -> SaveResult | None:
        """Check one run's perfect blend count; saves only when it earns a badge."""
        if count >= achievements.PERFECT_RUN_THRESHOLD and self._grant(achievements.PERFECT_10):
            return self._save()
        return None

    def complete_stage(self, stage_id: int, score: int) -> StageCompletion:
        """Finish a stage run: rate stars, unlock the next stage, and pay out currency.

        Negative scores pay no score bonus and never take currency away.
        """
        entry = self._entry(stage_id)
        entry.attempts += 1
        entry.best_score = max(entry.best_score, score)
        entry.completed_at = self._clock().isoformat()

        entry.stars = _star_rating(entry.accuracy(), entry.stars)

        unlocked_stage_id: int | None = None
        if 1 <= stage_id < self.stage_count:
            unlocked_stage_id = stage_id + 1
            self._entry(unlocked_stage_id).unlocked = True

        awarded = entry.stars * 50 + max(score, 0) // 10
        self._award(awarded)
        if self.all_stages_completed():
            self._grant(achievements.ALL_STAGES)
        return StageCompletion(
            stars=entry.stars,
            currency_awarded=awarded,
            unlocked_stage_id=unlocked_stage_id,
            save=self._save(),
        )

    def add_currency(self, amount: int) -> SaveResult:
        if amount < 0:
            raise ValueError("Currency amount must not be negative.")
        self._award(amount)
        return self._save()

    def spend_currency(self, amount: int) -> bool:
        """Deduct currency if the balance covers it; returns whether it did."""
        if amount < 0:
            raise ValueError("Currency amount must not be negative.")
        if self.state.currency_balance < amount:
            return False
        self.state.currency_balance -= amount
        self._save()
        return True

    def get_currency(self) -> int:
        return self.state.currency_balance

    def get_lifetime_currency(self) -> int:
        return self.state.lifetime_currency

    def get_total_words_mastered(self) -> int:
        return self.state.total_words_mastered

    def get_total_perfect_blends(self) -> int:
        return self.state.total_perfect_blends

    def get_difficulty_tier(self, stage_id: int) -> int:
        """Return 0 (easy), 1 (medium) or 2 (hard) from current blend accuracy."""
        entry = self.get_stage_progress(stage_id)
        if entry.total_blend_attempts < MIN_DIFFICULTY_SAMPLES:
            return 0
        accuracy = entry.accuracy()
        if accuracy >= 0.85:
            return 2
        if accuracy >= 0.60:
            return 1
        return 0

    def get_mastered_words(self, stage_id: int) -> set[str]:
        return set(self.get_stage_progress(stage_id).mastered_words)

    def get_stars(self, stage_id: int) -> int:
        return self.get_stage_progress(stage_id).stars

    def get_stage_summary(self, stage_id: int) -> StageSummary:
        entry = self.get_stage_progress(stage_id)
        return StageSummary(
            unlocked=entry.unlocked,
            stars=entry.stars,
            best_score=entry.best_score,
            mastered_count=len(entry.mastered_words),
            attempts=entry.attempts,
        )

    def all_stages_completed(self) -> bool:
        return all(
            self.get_stage_progress(stage_id).completed_at is not None for stage_id in range(1, self.stage_count + 1)
        )

    def record_endless_run(self, score: int, distance: int, combo: int = 0) -> SaveResult:
        state = self.state
        state.endless_total_runs += 1
        state.endless_high_score = max(state.endless_high_score, score)
        state.endless_best_distance = max(state.endless_best_distance, distance)
        state.best_combo = max(state.best_combo, combo)
        state.total_run_distance += max(distance, 0)
        self._grant_thresholds(distance, achievements.DISTANCE_THRESHOLDS)
        self._grant_thresholds(combo, achievements.COMBO_THRESHOLDS)
        return self._save()

    def get_endless_records(self) -> EndlessRecords:
        return EndlessRecords(
            high_score=self.state.endless_high_score,
            best_distance=self.state.endless_best_distance,
            total_runs=self.state.endless_total_runs,
            best_combo=self.state.best_combo,
            total_distance=self.state.total_run_distance,
        )

    def unlock_achievement(self, achievement_id: str) -> bool:
        """Award an achievement; returns False if it was already earned."""
        if not self._grant(achievement_id):
            return False
        self._save()
        return True

    def has_achievement(self, achievement_id: str) -> bool:
        return achievement_id in self.state.achievements

    def get_achievements(self) -> list[str]:
        return list(self.state.achievements)

    def get_new_achievements(self) -> list[str]:
        """Achievements earned since the last clear_new_achievements call."""
        return list(self.state.new_achievements)

    def clear_new_achievements(self) -> SaveResult:
        self.state.new_achievements = []
        return self._save()

    def get_daily_status(self) -> DailyStatus:
        """Return today's counters, rolling the day over first if needed."""
        self.start_session()
        state = self.state
        return DailyStatus(
            date=state.last_daily_date or self.today().isoformat(),
            progress=state.daily_progress,
            completed=state.daily_completed,
            streak=state.daily_streak,
            login_streak=state.login_streak,
            login_reward_claimed=state.login_reward_claimed,
        )

    def record_daily_word(self) -> SaveResult:
        self._roll_over_day()
        self.state.daily_progress += 1
        return self._save()

    def complete_daily(self) -> int:
        """Finish today's challenge once; returns the currency paid, 0 if already done."""
        self._roll_over_day()
        if self.state.daily_completed:
            return 0
        self.state.daily_completed = True
        reward = DAILY_BASE_REWARD + self.state.daily_streak * DAILY_STREAK_BONUS
        self._award(reward)
        self._grant(achievements.DAILY_DONE)
        self._save()
        return reward

    def claim_login_reward(self) -> int:
        """Pay today's login reward once; returns the amount, 0 if already claimed."""
        self._roll_over_day()
        if self.state.login_reward_claimed:
            return 0
        bonus_days = min(max(self.state.login_streak - 1, 0), LOGIN_BONUS_CAP)
        reward = LOGIN_BASE_REWARD + bonus_days * LOGIN_STREAK_BONUS
        self.state.login_reward_claimed = True
        self._award(reward)
        self._save()
        return reward

    def replace_state(self, state: ProgressState) -> SaveResult:
        """Swap in a whole state, e.g. from an imported export file."""
        self.state = state
        return self._save()

    def reset(self) -> SaveResult:
        """Wipe all progress back to a fresh state."""
        self.state = ProgressState.fresh(self.stage_count)
        return self._save()


def _star_rating(accuracy: float, current: int) -> int:
    """Stars never drop; 90% accuracy always earns the full three."""
    if accuracy >= 0.9:
        return MAX_STARS
    if accuracy >= 0.7:
        return max(current, 2)
    if accuracy >= 0.5:
        return max(current, 1)
    return current


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _coerce_int(value: object, default: int | None = None) -> int | None:
    """Coerce persisted value to int; NaN and infinities give the default."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return default
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _non_negative(value: object) -> int:
    coerced = _coerce_int(value, 0)
    return max(coerced or 0, 0)


def _strict_bool(value: object, default: bool = False) -> bool:
    """Only real JSON booleans count; strings like "false" give the default."""
    return value if isinstance(value, bool) else default


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _string_list(value: object) -> list[str]:
    """Unique strings from a persisted list, in order."""
    items: list[str] = []
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item not in items:
                items.append(item)
    return items
