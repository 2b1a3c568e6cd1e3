"""Movie catalog queries."""
from psycopg2.extras import RealDictCursor

from common.db import db_cursor
from common.logging import get_logger

logger = get_logger(__name__)

MOVIE_COLUMNS = (
    'id, title, description, release_date, duration, rating, genre, director, '
    'cast_members AS "cast", poster_url, imdb_id, created_by, created_at, updated_at'
)

# payload key -> column
WRITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "release_date": "release_date",
    "duration": "duration",
    "rating": "rating",
    "genre": "genre",
    "director": "director",
    "cast": "cast_members",
    "poster_url": "poster_url",
    "imdb_id": "imdb_id",
    "created_by": "created_by",
}

SORT_FIELDS = ["title", "rating", "release_date", "duration"]


def _offset(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit


def fetch_all() -> list[dict]:
    with db_cursor(RealDictCursor) as cur:
        cur.execute(f"SELECT {MOVIE_COLUMNS} FROM movies ORDER BY id")
        return [dict(row) for row in cur.fetchall()]


def fetch_by_id(movie_id: int) -> dict | None:
    with db_cursor(RealDictCursor) as cur:
        cur.execute(f"SELECT {MOVIE_COLUMNS} FROM movies WHERE id = %s", (movie_id,))
        row = cur.fetchone()
    return dict(row) if row else None


def count() -> int:
    with db_cursor() as cur:
        cur.execute("SELECT count(*) FROM movies")
        return cur.fetchone()[0]


def fetch_page(page: int = 1, limit: int = 10) -> list[dict]:
    """Newest movies first."""
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            f"SELECT {MOVIE_COLUMNS} FROM movies ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s",
            (limit, _offset(page, limit)),
        )
        return [dict(row) for row in cur.fetchall()]


def fetch_sorted(sort_by: str = "rating", order: str = "desc", page: int = 1, limit: int = 10) -> list[dict]:
    if sort_by not in SORT_FIELDS:
        raise ValueError(f"Invalid sort field. Allowed: {', '.join(SORT_FIELDS)}")
    direction = "ASC" if order.lower() == "asc" else "DESC"
    # sort_by is whitelisted above, so formatting it in is safe
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            f"SELECT {MOVIE_COLUMNS} FROM movies ORDER BY {sort_by} {direction}, id LIMIT %s OFFSET %s",
            (limit, _offset(page, limit)),
        )
        return [dict(row) for row in cur.fetchall()]


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search(query: str, page: int = 1, limit: int = 10) -> list[dict]:
    """Full text search on title and description.

    Falls back to a case-insensitive substring match when the text search
    finds nothing at all.
    """
    offset = _offset(page, limit)
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT {MOVIE_COLUMNS}
            FROM movies
            WHERE search_vector @@ plainto_tsquery('english', %s)
            ORDER BY ts_rank(search_vector, plainto_tsquery('english', %s)) DESC, id
            LIMIT %s OFFSET %s
            """,
            (query, query, limit, offset),
        )
        rows = cur.fetchall()
        if rows:
            return [dict(row) for row in rows]

        logger.debug("No full text match for %r, falling back to substring search", query)
        pattern = _like_pattern(query)
        cur.execute(
            f"""
            SELECT {MOVIE_COLUMNS}
            FROM movies
            WHERE title ILIKE %s OR description ILIKE %s
            ORDER BY created_at DESC, id DESC
            LIMIT %s OFFSET %s
            """,
            (pattern, pattern, limit, offset),
        )
        return [dict(row) for row in cur.fetchall()]


def create(data: dict) -> dict:
    fields = [key for key in WRITABLE_FIELDS if key in data]
    columns = ", ".join(WRITABLE_FIELDS[key] for key in fields)
    placeholders = ", ".join(["%s"] * len(fields))
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            f"INSERT INTO movies ({columns}) VALUES ({placeholders}) RETURNING {MOVIE_COLUMNS}",
            [data[key] for key in fields],
        )
        return dict(cur.fetchone())


def update(movie_id: int, changes: dict) -> dict | None:
    fields = [key for key in WRITABLE_FIELDS if key in changes and key != "created_by"]
    if not fields:
        return fetch_by_id(movie_id)
    assignments = ", ".join(f"{WRITABLE_FIELDS[key]} = %s" for key in fields)
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            f"UPDATE movies SET {assignments}, updated_at = now() WHERE id = %s RETURNING {MOVIE_COLUMNS}",
            [changes[key] for key in fields] + [movie_id],
        )
        row = cur.fetchone()
    return dict(row) if row else None


def delete(movie_id: int) -> bool:
    with db_cursor() as cur:
        cur.execute("DELETE FROM movies WHERE id = %s", (movie_id,))
        return cur.rowcount > 0


class MovieInserter:
    """Batch queue inserter writing one movie per call."""

    def insert(self, payload: dict) -> dict:
        movie = create(payload)
        logger.debug("Inserted movie %s (%s)", movie["id"], movie["title"])
        return movie
