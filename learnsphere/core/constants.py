"""Application-wide gamification and quiz constants."""

# Hard ceiling on User.total_points
MAX_TOTAL_POINTS = 120

# (threshold, badge) pairs, lowest first
BADGE_THRESHOLDS: list[tuple[int, str]] = [
    (0, "NEWBIE"),
    (40, "EXPLORER"),
    (60, "ACHIEVER"),
    (80, "SPECIALIST"),
    (100, "EXPERT"),
    (120, "MASTER"),
]

DEFAULT_FIRST_ATTEMPT_POINTS = 100
DEFAULT_SECOND_ATTEMPT_POINTS = 75
DEFAULT_THIRD_ATTEMPT_POINTS = 50
DEFAULT_FOURTH_PLUS_POINTS = 25
