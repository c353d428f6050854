# session_rater.py
"""Star rating for a finished session, based on the share of happy detections."""

# (minimum happiness ratio, rating), checked top-down; thresholds are inclusive
RATING_THRESHOLDS = (
    (0.8, 5),
    (0.6, 4),
    (0.4, 3),
    (0.2, 2),
)
LOWEST_RATING = 1
MAX_RATING = 5


def happiness_ratio(tally):
    """happy / total, or None when nothing was detected."""
    if tally.total == 0:
        return None
    return tally.happy / tally.total


def rate(tally) -> int:
    ratio = happiness_ratio(tally)
    if ratio is None:
        # No positive signal observed
        return LOWEST_RATING
    for threshold, rating in RATING_THRESHOLDS:
        if ratio >= threshold:
            return rating
    return LOWEST_RATING


def format_stars(rating) -> str:
    if rating is None:
        return "-"
    return "★" * rating + "☆" * (MAX_RATING - rating)
