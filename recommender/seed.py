"""Load a movie CSV and push it through the batch insert queue."""
from pathlib import Path

import pandas as pd

from common.logging import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ["title", "description", "release_date", "duration", "genre", "director", "poster_url"]


def _split(value):
    if pd.isna(value) or value == "":
        return []
    return [part.strip() for part in str(value).split("|") if part.strip()]


def load_movies_csv(path) -> list[dict]:
    """Read movies from ``path``. ``genre`` and ``cast`` are pipe separated, like ``Action|Drama``."""
    df = pd.read_csv(path)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing columns: {', '.join(missing)}")

    df["release_date"] = pd.to_datetime(df["release_date"]).dt.date
    if "rating" not in df.columns:
        df["rating"] = 0.0

    movies = []
    for row in df.to_dict(orient="records"):
        movie = {
            "title": str(row["title"]).strip(),
            "description": str(row["description"]),
            "release_date": row["release_date"],
            "duration": int(row["duration"]),
            "rating": 0.0 if pd.isna(row["rating"]) else float(row["rating"]),
            "genre": _split(row["genre"]),
            "director": str(row["director"]),
            "cast": _split(row.get("cast")),
            "poster_url": str(row["poster_url"]),
        }
        imdb_id = row.get("imdb_id")
        if imdb_id is not None and not pd.isna(imdb_id):
            movie["imdb_id"] = str(imdb_id)
        movies.append(movie)
    return movies


def seed_catalog(queue, path, created_by: str | None = None) -> int:
    path = Path(path)
    if not path.exists():
        logger.warning("Seed file %s not found, skipping", path)
        return 0
    movies = load_movies_csv(path)
    for movie in movies:
        queue.enqueue({**movie, "created_by": created_by})
    logger.info("Queued %d movies from %s", len(movies), path)
    return len(movies)
