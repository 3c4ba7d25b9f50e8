"""
Canonical exercise normalization engine.

Single source of truth for exercise identity: PR ledger keys, e1RM history
keys and RPE analysis groups all come from here.
"""

import os
import re

import yaml


# ---------------------------------------------------------------------------
# Parenthetical qualifiers to STRIP (these don't change exercise identity)
# ---------------------------------------------------------------------------
STRIP_PAREN_PATTERNS = [
    re.compile(r"\s*\(warm-?up(?:\s+set)?\s*\d*\)", re.IGNORECASE),
    re.compile(r"\s*\(build\)", re.IGNORECASE),
    re.compile(r"\s*\(working\)", re.IGNORECASE),
    re.compile(r"\s*\(back-?off\)", re.IGNORECASE),
    re.compile(r"\s*\(top\s+set\)", re.IGNORECASE),
    re.compile(r"\s*\(amrap\)", re.IGNORECASE),
    re.compile(r"\s*\(max\)", re.IGNORECASE),
    re.compile(r"\s*\(no\s+belt\)", re.IGNORECASE),
    re.compile(r"\s*\(belted\)", re.IGNORECASE),
]

# Post-dash qualifiers: " — top set", " - backoff"
STRIP_DASH_SUFFIX = re.compile(
    r"\s*[—–-]+\s*(?:top\s+set|back-?off|work|working)\s*$", re.IGNORECASE
)

# ---------------------------------------------------------------------------
# Abbreviation normalization
# ---------------------------------------------------------------------------
ABBREVIATION_MAP = [
    (re.compile(r"\bpull\s*ups?\b", re.IGNORECASE), "pull-up"),
    (re.compile(r"\bchin\s*ups?\b", re.IGNORECASE), "chin-up"),
    (re.compile(r"\bpull-ups\b", re.IGNORECASE), "pull-up"),
    (re.compile(r"\bchin-ups\b", re.IGNORECASE), "chin-up"),
]

# ---------------------------------------------------------------------------
# Alias groups for tracked compound lifts.
# First entry in each group is the canonical key.
# ---------------------------------------------------------------------------
COMPOUND_ALIAS_GROUPS = [
    ["bench_press", "bench press", "bench", "flat bench", "barbell bench",
     "bb bench", "barbell bench press"],
    ["squat", "squats", "back squat", "barbell squat", "bb squat"],
    ["deadlift", "deadlifts", "dl", "conventional deadlift"],
    ["overhead_press", "overhead press", "ohp", "press", "shoulder press",
     "military press"],
    ["barbell_row", "barbell row", "row", "bent over row", "bb row",
     "pendlay row"],
    ["romanian_deadlift", "rdl", "romanian deadlift", "stiff leg deadlift"],
    ["front_squat", "front squat", "front squats"],
    ["incline_bench", "incline bench", "incline press", "incline bench press"],
    ["weighted_pull_up", "weighted pull-up", "weighted pullup"],
    ["weighted_chin_up", "weighted chin-up", "weighted chinup"],
]

COMPOUND_LIFTS = tuple(group[0] for group in COMPOUND_ALIAS_GROUPS)

# Display overrides where title-casing the key reads wrong
DISPLAY_NAMES = {
    "weighted_pull_up": "Weighted Pull-Up",
    "weighted_chin_up": "Weighted Chin-Up",
    "romanian_deadlift": "Romanian Deadlift",
}

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def format_exercise_name(key):
    """bench_press -> Bench Press."""
    if key in DISPLAY_NAMES:
        return DISPLAY_NAMES[key]
    return " ".join(part.capitalize() for part in (key or "").split("_") if part)


class ExerciseNormalizer:
    """
    Canonical exercise normalization and matching.

    Usage:
        normalizer = ExerciseNormalizer()
        normalizer.canonical_key("OHP")  # -> "overhead_press"
        normalizer.canonical_key("Bench Press (Working)")  # -> "bench_press"
        normalizer.canonical_key("Lat Pulldown")  # -> "lat_pulldown"
        normalizer.compound_lift("Cable Fly")  # -> None
    """

    def __init__(self, aliases_file=None):
        # lowered cleaned name -> canonical key
        self._alias_to_key = {}
        for group in COMPOUND_ALIAS_GROUPS:
            canonical = group[0]
            self._alias_to_key[canonical] = canonical
            for alias in group[1:]:
                self._alias_to_key[self._clean(alias)] = canonical

        self._load_alias_file(aliases_file)

    def _load_alias_file(self, aliases_file):
        """Register exercise_aliases.yaml entries (alias -> canonical key)."""
        if not aliases_file or not os.path.exists(aliases_file):
            return
        try:
            with open(aliases_file, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            return

        for alias, target in (config.get("exercise_aliases") or {}).items():
            if not alias or not target:
                continue
            self.register_alias(str(alias), str(target))

    @staticmethod
    def _clean(name):
        """Strip identity-neutral qualifiers, unify abbreviations, lowercase."""
        if not name:
            return ""
        result = re.sub(r"\s+", " ", name.strip())
        for pattern in STRIP_PAREN_PATTERNS:
            result = pattern.sub("", result)
        result = STRIP_DASH_SUFFIX.sub("", result)
        for pattern, replacement in ABBREVIATION_MAP:
            result = pattern.sub(replacement, result)
        return re.sub(r"\s+", " ", result).strip().lower()

    @staticmethod
    def _slug(cleaned):
        return _SLUG_RE.sub("_", cleaned).strip("_")

    def canonical_key(self, name):
        """
        Return the stable ledger key for an exercise name.

        Known aliases resolve to their canonical key; anything else becomes a
        lowercase underscore slug ("Lat Pulldown" -> "lat_pulldown").
        """
        cleaned = self._clean(name)
        if not cleaned:
            return ""
        if cleaned in self._alias_to_key:
            return self._alias_to_key[cleaned]
        slug = self._slug(cleaned)
        return self._alias_to_key.get(slug, slug)

    def compound_lift(self, name):
        """Canonical key if the exercise is a tracked compound lift, else None."""
        key = self.canonical_key(name)
        return key if key in COMPOUND_LIFTS else None

    def is_compound_lift(self, name):
        return self.compound_lift(name) is not None

    def display_name(self, name):
        return format_exercise_name(self.canonical_key(name))

    def register_alias(self, raw_name, canonical):
        """
        Register a new alias at runtime.

        Args:
            raw_name: The variant name to register
            canonical: Canonical key or a name that already resolves to one
        """
        target = self.canonical_key(canonical)
        alias = self._clean(raw_name)
        if alias and target:
            self._alias_to_key[alias] = target
