"""
Weight unit configuration and plate milestones.

Weights are stored in the unit the athlete logs in. Milestone tables exist
for both units: 45 lb plates in lbs mode, 20 kg plates in kg mode.
"""

SUPPORTED_UNITS = ("lbs", "kg")

PLATE_MILESTONES = {
    "lbs": {
        "bench_press": [135, 185, 225, 275, 315, 365, 405],
        "squat": [135, 185, 225, 275, 315, 365, 405, 455, 495, 545],
        "deadlift": [135, 225, 315, 405, 495, 585, 635],
        "overhead_press": [95, 135, 185, 225],
    },
    "kg": {
        "bench_press": [60, 80, 100, 120, 140, 160, 180],
        "squat": [60, 80, 100, 120, 140, 160, 180, 200, 220, 240],
        "deadlift": [60, 100, 140, 180, 220, 260, 280],
        "overhead_press": [40, 60, 80, 100],
    },
}

MILESTONE_NAMES = {
    "lbs": {
        95: "Green plate club",
        135: "One plate club",
        185: "One plate + 25s",
        225: "Two plate club",
        275: "Two plate + 25s",
        315: "Three plate club",
        365: "Three plate + 25s",
        405: "Four plate club",
        455: "Four plate + 25s",
        495: "Five plate club",
        545: "Five plate + 25s",
        585: "Six plate club",
        635: "Six plate + 25s",
    },
    "kg": {
        40: "Green plate club",
        60: "One plate club",
        80: "One plate + 10s",
        100: "Two plate club",
        120: "Two plate + 10s",
        140: "Three plate club",
        160: "Three plate + 10s",
        180: "Four plate club",
        200: "Four plate + 10s",
        220: "Five plate club",
        240: "Five plate + 10s",
        260: "Six plate club",
        280: "Six plate + 10s",
    },
}

# Plate count thresholds used for emoji selection, per unit
_EMOJI_THRESHOLDS = {
    "lbs": [(405, "🏆👑"), (315, "🏆🔥"), (225, "🏆"), (135, "💪")],
    "kg": [(180, "🏆👑"), (140, "🏆🔥"), (100, "🏆"), (60, "💪")],
}


def normalize_unit(unit):
    """Return a supported unit, defaulting to lbs."""
    value = (unit or "").strip().lower()
    if value in ("kg", "kgs", "kilograms"):
        return "kg"
    return "lbs"


def plate_milestones(unit, exercise_key):
    """Ascending milestone weights for an exercise, empty when none defined."""
    return list(PLATE_MILESTONES[normalize_unit(unit)].get(exercise_key, []))


def milestone_name(unit, weight):
    names = MILESTONE_NAMES[normalize_unit(unit)]
    return names.get(weight, f"{weight} {normalize_unit(unit)} club")


def milestone_emoji(unit, weight):
    for threshold, emoji in _EMOJI_THRESHOLDS[normalize_unit(unit)]:
        if weight >= threshold:
            return emoji
    return "⭐"
