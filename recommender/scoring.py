"""Per-movie relevance scoring.

A score is the weighted sum of six independent signals, each in [0, 1]:
genre and director affinity from the user's preference snapshot, the movie's
own rating, how busy the movie has been over the last week, how recently it
was released and whether the user has already seen it.

All functions are pure. Anything time dependent takes ``now`` so callers (and
tests) can pin the clock.
"""
from datetime import date, datetime, timedelta, timezone

WEIGHTS = {
    "genre": 0.40,
    "director": 0.20,
    "rating": 0.15,
    "popularity": 0.10,
    "recency": 0.10,
    "exposure": 0.05,
}

NEUTRAL = 0.5
POPULARITY_WINDOW = timedelta(days=7)
POPULARITY_CAP = 100


def utc(value) -> datetime:
    """Normalize a date, naive datetime or ISO string to an aware UTC datetime."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise TypeError(f"expected a date or datetime, got {type(value).__name__}")


def genre_score(genres, prefs) -> float:
    preferred = prefs.get("preferred_genres") or []
    if not preferred:
        return NEUTRAL
    if not genres:
        return 0.0
    liked = {g.lower() for g in preferred}
    matching = sum(1 for g in genres if g.lower() in liked)
    return min(matching / len(genres), 1.0)


def director_score(director, prefs) -> float:
    preferred = prefs.get("preferred_directors") or []
    if not preferred:
        return NEUTRAL
    liked = {d.lower() for d in preferred}
    return 1.0 if (director or "").lower() in liked else 0.3


def rating_score(rating) -> float:
    return (rating or 0) / 10


def recent_interaction_count(movie_id, interactions, now=None, window=POPULARITY_WINDOW) -> int:
    """Interactions on ``movie_id`` whose timestamp falls inside ``window`` before ``now``."""
    now = utc(now or datetime.now(timezone.utc))
    since = now - window
    return sum(
        1
        for i in interactions
        if str(i["movie_id"]) == str(movie_id) and i.get("timestamp") and utc(i["timestamp"]) >= since
    )


def popularity_score(movie_id, interactions, now=None) -> float:
    return min(recent_interaction_count(movie_id, interactions, now) / POPULARITY_CAP, 1.0)


def recency_score(release_date, now=None) -> float:
    now = utc(now or datetime.now(timezone.utc))
    years = (now - utc(release_date)).total_seconds() / (365 * 86400)
    if years <= 5:
        return 1.0
    if years <= 10:
        return 0.7
    if years <= 20:
        return 0.5
    return 0.3


def exposure_score(movie_id, prefs) -> float:
    # already seen movies are pushed down, unseen ones get a novelty bonus
    viewed = prefs.get("viewed_movies") or []
    if any(str(v["movie_id"]) == str(movie_id) for v in viewed):
        return 0.1
    return 0.8


def score_breakdown(movie, prefs, interactions, now=None) -> dict:
    now = utc(now or datetime.now(timezone.utc))
    return {
        "genre": genre_score(movie.get("genre") or [], prefs),
        "director": director_score(movie.get("director"), prefs),
        "rating": rating_score(movie.get("rating")),
        "popularity": popularity_score(movie["id"], interactions, now),
        "recency": recency_score(movie["release_date"], now),
        "exposure": exposure_score(movie["id"], prefs),
    }


def score_movie(movie, prefs, interactions, now=None) -> float:
    """Relevance of ``movie`` for a user with preference snapshot ``prefs``, in [0, 1]."""
    parts = score_breakdown(movie, prefs, interactions, now)
    total = sum(parts[name] * weight for name, weight in WEIGHTS.items())
    return max(0.0, min(total, 1.0))
