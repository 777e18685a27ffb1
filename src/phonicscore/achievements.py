"""Achievement definitions awarded by the progress store."""

from __future__ import annotations

from .models import Achievement

FIRST_BLEND = "first-blend"
WORDS_50 = "words-50"
WORDS_200 = "words-200"
PERFECT_10 = "perfect-10"
SLIP_RECOVER = "slip-recover"
COMBO_5 = "combo-5"
COMBO_10 = "combo-10"
COMBO_20 = "combo-20"
DIST_100 = "dist-100"
DIST_500 = "dist-500"
DIST_1000 = "dist-1000"
DIST_2000 = "dist-2000"
DAILY_DONE = "daily-done"
DAILY_STREAK_3 = "daily-streak3"
DAILY_STREAK_7 = "daily-streak7"
ALL_STAGES = "all-stages"
CURRENCY_500 = "ricegrain-500"

ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement(FIRST_BLEND, "First Blend!", "Complete your first word blend", "⚔️"),
    Achievement(COMBO_5, "Combo Starter", "Hit a 5-combo streak", "🔥"),
    Achievement(COMBO_10, "Combo Warrior", "Hit a 10-combo streak", "💥"),
    Achievement(COMBO_20, "Combo Legend", "Hit a 20-combo streak", "🌟"),
    Achievement(DIST_100, "First Sprint", "Run 100m in endless mode", "🏃"),
    Achievement(DIST_500, "Long Runner", "Run 500m in endless mode", "🗺️"),
    Achievement(DIST_1000, "Marathon Riku", "Run 1000m in endless mode", "🏅"),
    Achievement(DIST_2000, "Endless Legend", "Run 2000m in endless mode", "🏆"),
    Achievement(DAILY_DONE, "Daily Warrior", "Complete a daily challenge", "📅"),
    Achievement(DAILY_STREAK_3, "3-Day Streak", "Complete daily challenges 3 days in a row", "🔗"),
    Achievement(DAILY_STREAK_7, "Week Warrior", "7-day daily challenge streak", "🌠"),
    Achievement(WORDS_50, "Word Apprentice", "Blend 50 words total", "📚"),
    Achievement(WORDS_200, "Word Master", "Blend 200 words total", "🧙"),
    Achievement(PERFECT_10, "Perfect 10", "Get 10 perfect blends in one run", "💯"),
    Achievement(ALL_STAGES, "Dino Slayer", "Complete all 6 campaign stages", "🦕"),
    Achievement(CURRENCY_500, "Rice Baron", "Collect 500 rice grains total", "🌾"),
    Achievement(SLIP_RECOVER, "Oof Recovery", "Miss a blend but keep running anyway", "😅"),
)

# (threshold, achievement id) pairs, checked in order
WORD_THRESHOLDS = ((1, FIRST_BLEND), (50, WORDS_50), (200, WORDS_200))
DISTANCE_THRESHOLDS = ((100, DIST_100), (500, DIST_500), (1000, DIST_1000), (2000, DIST_2000))
COMBO_THRESHOLDS = ((5, COMBO_5), (10, COMBO_10), (20, COMBO_20))
DAILY_STREAK_THRESHOLDS = ((3, DAILY_STREAK_3), (7, DAILY_STREAK_7))
PERFECT_RUN_THRESHOLD = 10
CURRENCY_THRESHOLD = 500

_BY_ID = {achievement.id: achievement for achievement in ACHIEVEMENTS}


def get_achievement(achievement_id: str) -> Achievement | None:
    """Return the definition for an id, or None for ids not in the table."""
    return _BY_ID.get(achievement_id)
