"""DDL for the catalog, interaction and preference tables."""
from common.db import db_cursor
from common.logging import get_logger

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS movies (
    id SERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    release_date DATE NOT NULL,
    duration INTEGER NOT NULL,
    rating DOUBLE PRECISION NOT NULL DEFAULT 0 CHECK (rating >= 0 AND rating <= 10),
    genre TEXT[] NOT NULL,
    director TEXT NOT NULL,
    cast_members TEXT[] NOT NULL DEFAULT '{}',
    poster_url TEXT NOT NULL,
    imdb_id TEXT UNIQUE,
    created_by TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    search_vector TSVECTOR GENERATED ALWAYS AS (
        to_tsvector('english', coalesce(title, '') || ' ' || coalesce(description, ''))
    ) STORED
);
CREATE INDEX IF NOT EXISTS movies_search_idx ON movies USING GIN (search_vector);
CREATE INDEX IF NOT EXISTS movies_rating_idx ON movies (rating DESC);
CREATE INDEX IF NOT EXISTS movies_release_date_idx ON movies (release_date DESC);
CREATE INDEX IF NOT EXISTS movies_duration_idx ON movies (duration);
CREATE INDEX IF NOT EXISTS movies_title_idx ON movies (title);
CREATE INDEX IF NOT EXISTS movies_created_at_idx ON movies (created_at DESC);

CREATE TABLE IF NOT EXISTS interactions (
    id SERIAL PRIMARY KEY,
    user_id TEXT NOT NULL,
    movie_id INTEGER NOT NULL,
    interaction_type TEXT NOT NULL
        CHECK (interaction_type IN ('view', 'like', 'share', 'search', 'click')),
    metadata JSONB NOT NULL DEFAULT '{}',
    weight DOUBLE PRECISION NOT NULL DEFAULT 1,
    occurred_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS interactions_user_idx ON interactions (user_id, interaction_type);
CREATE INDEX IF NOT EXISTS interactions_movie_idx ON interactions (movie_id, interaction_type);
CREATE INDEX IF NOT EXISTS interactions_occurred_at_idx ON interactions (occurred_at DESC);

CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
    preferred_genres TEXT[] NOT NULL DEFAULT '{}',
    preferred_directors TEXT[] NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS user_viewed_movies (
    user_id TEXT NOT NULL REFERENCES users (user_id),
    movie_id INTEGER NOT NULL,
    viewed_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    watch_time INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, movie_id)
);

CREATE TABLE IF NOT EXISTS user_liked_movies (
    user_id TEXT NOT NULL REFERENCES users (user_id),
    movie_id INTEGER NOT NULL,
    liked_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (user_id, movie_id)
);

CREATE TABLE IF NOT EXISTS user_search_history (
    id SERIAL PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users (user_id),
    query TEXT NOT NULL,
    searched_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


def init_schema():
    with db_cursor() as cur:
        cur.execute(SCHEMA)
    logger.info("Database schema ready")
