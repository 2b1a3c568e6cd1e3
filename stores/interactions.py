"""User interaction records. Rows are append-only."""
from datetime import datetime

from psycopg2.extras import Json, RealDictCursor

from common.db import db_cursor

INTERACTION_TYPES = ["view", "like", "share", "search", "click"]

INTERACTION_COLUMNS = 'id, user_id, movie_id, interaction_type, metadata, weight, occurred_at AS "timestamp"'


def create(user_id: str, movie_id: int, interaction_type: str, metadata: dict | None = None, weight: float = 1) -> dict:
    if interaction_type not in INTERACTION_TYPES:
        raise ValueError(f"Invalid interaction type: {interaction_type}")
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            f"""
            INSERT INTO interactions (user_id, movie_id, interaction_type, metadata, weight)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {INTERACTION_COLUMNS}
            """,
            (user_id, movie_id, interaction_type, Json(metadata or {}), weight),
        )
        return dict(cur.fetchone())


def fetch_since(since: datetime) -> list[dict]:
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            f"SELECT {INTERACTION_COLUMNS} FROM interactions WHERE occurred_at >= %s ORDER BY occurred_at",
            (since,),
        )
        return [dict(row) for row in cur.fetchall()]


def fetch_for_movie(movie_id: int, since: datetime | None = None) -> list[dict]:
    query = f"SELECT {INTERACTION_COLUMNS} FROM interactions WHERE movie_id = %s"
    params = [movie_id]
    if since is not None:
        query += " AND occurred_at >= %s"
        params.append(since)
    with db_cursor(RealDictCursor) as cur:
        cur.execute(query + " ORDER BY occurred_at", params)
        return [dict(row) for row in cur.fetchall()]


def fetch_for_user(user_id: str, since: datetime | None = None) -> list[dict]:
    query = f"SELECT {INTERACTION_COLUMNS} FROM interactions WHERE user_id = %s"
    params = [user_id]
    if since is not None:
        query += " AND occurred_at >= %s"
        params.append(since)
    with db_cursor(RealDictCursor) as cur:
        cur.execute(query + " ORDER BY occurred_at DESC", params)
        return [dict(row) for row in cur.fetchall()]
