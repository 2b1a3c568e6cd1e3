import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from common.logging import get_logger
from common.redis_client import get_redis_client, trending_cache_key
from common.config import get_settings
from common.serde import from_json_bytes, to_json_bytes
from recommender.feed import personalized_feed, trending_feed
from stores import catalog, interactions, users

from .auth import admin_user, current_user, optional_user
from .schemas import Identity, InteractionIn, MovieBatch, MovieIn, MovieUpdate, QueueStatus

settings = get_settings()
logger = get_logger(__name__)
router = APIRouter(prefix="/api/movies", tags=["movies"])

FEED_WINDOW = timedelta(days=30)
TRENDING_WINDOW = timedelta(days=7)
TRACKED_INTERACTIONS = ["view", "like", "share", "click"]


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "pages": math.ceil(total / limit), "total": total}


def _get_movie_or_404(movie_id: int) -> dict:
    movie = catalog.fetch_by_id(movie_id)
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie


@router.get("")
def list_movies(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    movies = catalog.fetch_page(page, limit)
    total = catalog.count()
    return {"count": len(movies), "pagination": _pagination(page, limit, total), "data": movies}


@router.get("/feed")
def get_feed(limit: int = Query(20, ge=1, le=100), user: Identity = Depends(current_user)):
    """Personalized feed for the calling user."""
    now = datetime.now(timezone.utc)
    prefs = users.get_preferences(user.user_id)
    recent = interactions.fetch_since(now - FEED_WINDOW)
    movies = catalog.fetch_all()

    feed = personalized_feed(movies, prefs, recent, limit=limit, now=now)
    return {"count": len(feed), "data": feed}


@router.get("/trending")
def get_trending(limit: int = Query(20, ge=1, le=100)):
    redis_client = get_redis_client()
    cache_key = trending_cache_key(limit)
    cached = redis_client.get(cache_key)
    if cached:
        return from_json_bytes(cached)

    now = datetime.now(timezone.utc)
    recent = interactions.fetch_since(now - TRENDING_WINDOW)
    movies = catalog.fetch_all()
    feed = trending_feed(movies, recent, limit=limit, now=now)

    body = {"count": len(feed), "data": feed}
    payload = to_json_bytes(body)
    redis_client.setex(cache_key, settings.trending_cache_ttl, payload)
    # serve exactly what later cache hits will serve
    return from_json_bytes(payload)


@router.get("/sorted")
def get_sorted(
    sort_by: str = "rating",
    order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    if sort_by not in catalog.SORT_FIELDS:
        raise HTTPException(
            status_code=400, detail=f"Invalid sort field. Allowed: {', '.join(catalog.SORT_FIELDS)}"
        )
    movies = catalog.fetch_sorted(sort_by, order, page, limit)
    total = catalog.count()
    return {
        "count": len(movies),
        "pagination": _pagination(page, limit, total),
        "sort_by": sort_by,
        "order": order,
        "data": movies,
    }


@router.get("/search")
def search_movies(
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: Optional[Identity] = Depends(optional_user),
):
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Please provide a search query")

    if user:
        users.record_search(user.user_id, q)

    movies = catalog.search(q, page, limit)
    return {"count": len(movies), "query": q, "data": movies}


@router.get("/queue/status", response_model=QueueStatus)
def queue_status(request: Request, user: Identity = Depends(admin_user)):
    return request.app.state.movie_queue.get_status()


@router.get("/{movie_id}")
def get_movie(movie_id: int, user: Optional[Identity] = Depends(optional_user)):
    movie = _get_movie_or_404(movie_id)

    if user:
        interactions.create(user.user_id, movie["id"], "view")
        users.record_view(user.user_id, movie)

    return {"data": movie}


@router.post("", status_code=201)
def create_movie(body: MovieIn, user: Identity = Depends(admin_user)):
    movie = catalog.create({**body.model_dump(), "created_by": user.user_id})
    logger.info("Movie %s created by %s", movie["id"], user.user_id)
    return {"data": movie}


@router.post("/batch", status_code=202)
async def create_movies_batch(body: MovieBatch, request: Request, user: Identity = Depends(admin_user)):
    """Queue movies for background insertion. Failures are retried, never reported back."""
    if not body.movies:
        raise HTTPException(status_code=400, detail="Please provide an array of movies")

    queue = request.app.state.movie_queue
    for movie in body.movies:
        queue.enqueue({**movie.model_dump(), "created_by": user.user_id})

    return {
        "message": f"{len(body.movies)} movies added to queue for processing",
        "queue_status": queue.get_status(),
    }


@router.put("/{movie_id}")
def update_movie(movie_id: int, body: MovieUpdate, user: Identity = Depends(admin_user)):
    movie = catalog.update(movie_id, body.model_dump(exclude_unset=True))
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return {"data": movie}


@router.delete("/{movie_id}")
def delete_movie(movie_id: int, user: Identity = Depends(admin_user)):
    if not catalog.delete(movie_id):
        raise HTTPException(status_code=404, detail="Movie not found")
    logger.info("Movie %s deleted by %s", movie_id, user.user_id)
    return {"message": "Movie deleted successfully"}


@router.post("/{movie_id}/interaction", status_code=201)
def track_interaction(movie_id: int, body: InteractionIn, user: Identity = Depends(current_user)):
    if body.interaction_type not in TRACKED_INTERACTIONS:
        raise HTTPException(
            status_code=400, detail=f"Invalid interaction type. Allowed: {', '.join(TRACKED_INTERACTIONS)}"
        )

    movie = _get_movie_or_404(movie_id)
    interaction = interactions.create(
        user.user_id, movie_id, body.interaction_type, body.metadata.model_dump(exclude_none=True)
    )

    if body.interaction_type == "like":
        users.record_like(user.user_id, movie)

    return {"data": interaction}
