"""Feed ranking on top of the scoring functions.

Both feeds rely on ``sorted`` being stable so that equal scores keep the
order the candidates came in.
"""
from datetime import datetime, timezone

from recommender.scoring import recent_interaction_count, score_movie, utc

DEFAULT_LIMIT = 20
TRENDING_CAP = 50


def _rank(scored, limit):
    if limit <= 0:
        return []
    ranked = sorted(scored, key=lambda item: -item[1])
    return [movie for movie, _ in ranked[:limit]]


def personalized_feed(movies, prefs, interactions, limit: int = DEFAULT_LIMIT, now=None):
    """Movies ordered by ``score_movie`` for one user, best first."""
    now = utc(now or datetime.now(timezone.utc))
    scored = [(movie, score_movie(movie, prefs, interactions, now)) for movie in movies]
    return _rank(scored, limit)


def trending_score(movie, interactions, now=None) -> float:
    count = recent_interaction_count(movie["id"], interactions, now)
    return ((movie.get("rating") or 0) / 10) * 0.5 + min(count / TRENDING_CAP, 1.0) * 0.5


def trending_feed(movies, interactions, limit: int = DEFAULT_LIMIT, now=None):
    now = utc(now or datetime.now(timezone.utc))
    scored = [(movie, trending_score(movie, interactions, now)) for movie in movies]
    return _rank(scored, limit)
