import os
from functools import lru_cache


class Settings:
    # Database settings
    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str

    redis_url: str
    log_level: str

    # Batch insert queue
    queue_batch_size: int
    queue_max_retries: int
    queue_batch_delay: float
    queue_retry_interval: float

    trending_cache_ttl: int
    seed_movies_csv: str

    # Auth
    jwt_secret: str
    jwt_algorithm: str
    jwt_expire_days: int
    admin_emails: list[str]

    def __init__(self):
        # Database
        self.db_host = os.getenv("DB_HOST", "localhost")
        self.db_port = int(os.getenv("DB_PORT", "5432"))
        self.db_name = os.getenv("DB_NAME", "movie_catalog")
        self.db_user = os.getenv("DB_USER", "postgres")
        self.db_password = os.getenv("DB_PASSWORD", "password")

        # Redis
        self.redis_url = os.getenv("REDIS_URL", "redis://redis:6379")

        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Queue
        self.queue_batch_size = int(os.getenv("QUEUE_BATCH_SIZE", "10"))
        self.queue_max_retries = int(os.getenv("QUEUE_MAX_RETRIES", "3"))
        self.queue_batch_delay = float(os.getenv("QUEUE_BATCH_DELAY", "0.1"))
        self.queue_retry_interval = float(os.getenv("QUEUE_RETRY_INTERVAL", "5"))

        # Feeds
        self.trending_cache_ttl = int(os.getenv("TRENDING_CACHE_TTL", "60"))

        # Optional CSV of movies pushed through the batch queue on startup
        self.seed_movies_csv = os.getenv("SEED_MOVIES_CSV", "")

        # Auth
        self.jwt_secret = os.getenv("JWT_SECRET", "change-me-in-production")
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_expire_days = int(os.getenv("JWT_EXPIRE_DAYS", "30"))
        # registrations with these emails get the admin role
        self.admin_emails = [e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
