"""Bucket boundaries used by the analytics engine."""

# (label, inclusive lower bound) ordered from best to worst.
SATISFACTION_BUCKETS: tuple[tuple[str, float], ...] = (
    ("Excellent", 4.5),
    ("Good", 3.5),
    ("Average", 2.5),
    ("Below Average", float("-inf")),
)

# (label, inclusive lower bound, exclusive upper bound) in percent.
SCORE_BANDS: tuple[tuple[str, float, float], ...] = (
    ("90-100%", 90.0, float("inf")),
    ("80-89%", 80.0, 90.0),
    ("70-79%", 70.0, 80.0),
    ("60-69%", 60.0, 70.0),
    ("<60%", float("-inf"), 60.0),
)
