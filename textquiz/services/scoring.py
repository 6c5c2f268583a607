"""
Dual-streak scoring.

Play streak counts consecutive answered questions, right or wrong.
Winning streak counts consecutive correct answers and resets on a miss.

Points use the streaks as they stood before the answer:
- Wrong answer: 10 points
- Correct answer: 100 + winning_streak * 20 + play_streak
"""

from dataclasses import dataclass

WRONG_ANSWER_POINTS = 10
CORRECT_BASE_POINTS = 100
WINNING_STREAK_BONUS = 20
PLAY_STREAK_BONUS = 1

# (minimum streak, message), highest first
_PLAY_MILESTONES = [
    (30, "🎯🎯🎯🎯🎯 INCREDIBLE play streak! True quiz master!"),
    (21, "🎯🎯🎯🎯 Legendary play streak! Quiz devotee!"),
    (14, "🎯🎯🎯 Amazing play streak! Daily champion!"),
    (7, "🎯🎯 Great play streak! You're dedicated!"),
    (3, "🎯 Nice play streak! Keep it up!"),
]

_WINNING_MILESTONES = [
    (30, "🔥🔥🔥🔥🔥 INCREDIBLE winning streak! Trivia legend!"),
    (21, "🔥🔥🔥🔥 Legendary winning streak! Quiz master!"),
    (14, "🔥🔥🔥 Amazing winning streak! Unstoppable!"),
    (7, "🔥🔥 Great winning streak! You're on fire!"),
    (3, "🔥 Nice winning streak! Keep it up!"),
]


@dataclass
class PointsBreakdown:
    """Points split into base and streak bonus, plus encouragement text."""

    total_points: int
    base_points: int
    streak_bonus: int
    message: str


def score(is_correct: bool, winning_streak: int, play_streak: int) -> int:
    """Points awarded for an answer, given the pre-answer streaks."""
    if not is_correct:
        return WRONG_ANSWER_POINTS
    return (
        CORRECT_BASE_POINTS
        + winning_streak * WINNING_STREAK_BONUS
        + play_streak * PLAY_STREAK_BONUS
    )


def next_streaks(is_correct: bool, winning_streak: int, play_streak: int) -> tuple[int, int]:
    """Return (winning_streak, play_streak) after an answer."""
    return (winning_streak + 1 if is_correct else 0, play_streak + 1)


def _milestone(streak: int, milestones: list[tuple[int, str]]) -> str:
    for minimum, message in milestones:
        if streak >= minimum:
            return message
    return ""


def play_streak_message(play_streak: int) -> str:
    return _milestone(play_streak, _PLAY_MILESTONES)


def winning_streak_message(winning_streak: int) -> str:
    return _milestone(winning_streak, _WINNING_MILESTONES)


def points_breakdown(is_correct: bool, winning_streak: int, play_streak: int) -> PointsBreakdown:
    """
    Explain an award for the answer feedback SMS.

    Streak arguments are the pre-answer values, matching `score`.
    Milestone messages are chosen from the post-answer streaks.
    """
    total = score(is_correct, winning_streak, play_streak)
    new_winning, new_play = next_streaks(is_correct, winning_streak, play_streak)
    play_message = play_streak_message(new_play)

    if not is_correct:
        lines = [f"Score: +{total} points for trying! 💪"]
        if play_message:
            lines.append(play_message)
        if winning_streak > 0:
            lines.append(
                f"⚠️ Winning streak reset, but your {new_play}-day play streak continues!"
            )
        return PointsBreakdown(
            total_points=total,
            base_points=total,
            streak_bonus=0,
            message="\n".join(lines),
        )

    bonus = total - CORRECT_BASE_POINTS
    headline = f"Score: +{total} points"
    if bonus > 0:
        headline += f" ({CORRECT_BASE_POINTS} base + {bonus} streak bonus!)"
    lines = [headline]

    winning_message = winning_streak_message(new_winning)
    if winning_message:
        lines.append(winning_message)
    if play_message:
        lines.append(play_message)

    return PointsBreakdown(
        total_points=total,
        base_points=CORRECT_BASE_POINTS,
        streak_bonus=bonus,
        message="\n".join(lines),
    )
