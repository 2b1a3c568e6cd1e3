"""User accounts and per-user preference snapshots.

Preference history only ever grows. Genres and directors keep the order they
were first seen in and never hold duplicates.
"""
import uuid

from psycopg2.extras import RealDictCursor

from common.db import db_cursor

ACCOUNT_COLUMNS = "user_id, username, email, role, created_at"

# appends to an array column, keeping first-seen order and dropping repeats
_MERGE = "ARRAY(SELECT v FROM unnest({col} || %s::text[]) WITH ORDINALITY AS t(v, i) GROUP BY v ORDER BY min(i))"

_APPEND_PREFERENCES = f"""
UPDATE users SET
    preferred_genres = {_MERGE.format(col="preferred_genres")},
    preferred_directors = {_MERGE.format(col="preferred_directors")}
WHERE user_id = %s
"""


def create_account(username: str, email: str, password_hash: str, role: str = "user") -> dict:
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            f"""
            INSERT INTO users (user_id, username, email, password_hash, role)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {ACCOUNT_COLUMNS}
            """,
            (str(uuid.uuid4()), username, email.lower(), password_hash, role),
        )
        return dict(cur.fetchone())


def account_exists(username: str, email: str) -> bool:
    with db_cursor() as cur:
        cur.execute(
            "SELECT 1 FROM users WHERE email = %s OR username = %s LIMIT 1",
            (email.lower(), username),
        )
        return cur.fetchone() is not None


def fetch_account(user_id: str) -> dict | None:
    with db_cursor(RealDictCursor) as cur:
        cur.execute(f"SELECT {ACCOUNT_COLUMNS} FROM users WHERE user_id = %s", (user_id,))
        row = cur.fetchone()
    return dict(row) if row else None


def fetch_account_by_email(email: str) -> dict | None:
    """Account including its password hash, for login."""
    with db_cursor(RealDictCursor) as cur:
        cur.execute(f"SELECT {ACCOUNT_COLUMNS}, password_hash FROM users WHERE email = %s", (email.lower(),))
        row = cur.fetchone()
    return dict(row) if row else None


def empty_preferences() -> dict:
    return {
        "preferred_genres": [],
        "preferred_directors": [],
        "viewed_movies": [],
        "liked_movies": [],
        "search_history": [],
    }


def get_preferences(user_id: str) -> dict:
    prefs = empty_preferences()
    with db_cursor(RealDictCursor) as cur:
        cur.execute(
            "SELECT preferred_genres, preferred_directors FROM users WHERE user_id = %s",
            (user_id,),
        )
        row = cur.fetchone()
        if not row:
            return prefs
        prefs["preferred_genres"] = list(row["preferred_genres"])
        prefs["preferred_directors"] = list(row["preferred_directors"])

        cur.execute(
            "SELECT movie_id, viewed_at, watch_time FROM user_viewed_movies WHERE user_id = %s ORDER BY viewed_at",
            (user_id,),
        )
        prefs["viewed_movies"] = [dict(r) for r in cur.fetchall()]

        cur.execute(
            "SELECT movie_id FROM user_liked_movies WHERE user_id = %s ORDER BY liked_at",
            (user_id,),
        )
        prefs["liked_movies"] = [r["movie_id"] for r in cur.fetchall()]

        cur.execute(
            "SELECT query, searched_at FROM user_search_history WHERE user_id = %s ORDER BY searched_at",
            (user_id,),
        )
        prefs["search_history"] = [dict(r) for r in cur.fetchall()]
    return prefs


def _append_preferences(cur, user_id: str, movie: dict):
    directors = [movie["director"]] if movie.get("director") else []
    cur.execute(_APPEND_PREFERENCES, (list(movie["genre"]), directors, user_id))


def record_view(user_id: str, movie: dict, watch_time: int = 0):
    """Adds the movie to the viewed list and its genres/director to the preferences."""
    with db_cursor() as cur:
        _append_preferences(cur, user_id, movie)
        cur.execute(
            """
            INSERT INTO user_viewed_movies (user_id, movie_id, watch_time)
            VALUES (%s, %s, %s)
            ON CONFLICT (user_id, movie_id) DO NOTHING
            """,
            (user_id, movie["id"], watch_time),
        )


def record_like(user_id: str, movie: dict):
    with db_cursor() as cur:
        _append_preferences(cur, user_id, movie)
        cur.execute(
            "INSERT INTO user_liked_movies (user_id, movie_id) VALUES (%s, %s) ON CONFLICT DO NOTHING",
            (user_id, movie["id"]),
        )


def record_search(user_id: str, query: str):
    with db_cursor() as cur:
        cur.execute(
            "INSERT INTO user_search_history (user_id, query) VALUES (%s, %s)",
            (user_id, query),
        )
