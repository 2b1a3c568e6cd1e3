import psycopg2
from psycopg2.pool import SimpleConnectionPool
from contextlib import contextmanager
from common.config import get_settings
from common.logging import get_logger

settings = get_settings()
logger = get_logger(__name__)

pool: SimpleConnectionPool | None = None


def init_pool(minconn: int = 1, maxconn: int = 5):
    global pool
    if pool:
        return pool
    pool = SimpleConnectionPool(
        minconn,
        maxconn,
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
        user=settings.db_user,
        password=settings.db_password,
    )
    logger.info("Connected to Postgres at %s:%s/%s", settings.db_host, settings.db_port, settings.db_name)
    return pool


def close_pool():
    global pool
    if pool:
        pool.closeall()
        pool = None


def get_conn():
    if pool is None:
        init_pool()
    return pool.getconn()


def put_conn(conn):
    if pool:
        pool.putconn(conn)


@contextmanager
def db_cursor(cursor_factory=None):
    conn = get_conn()
    cur = conn.cursor(cursor_factory=cursor_factory)
    try:
        yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()
        put_conn(conn)
