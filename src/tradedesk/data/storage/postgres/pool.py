from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

def create_pool(dsn: str, *, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
    return ConnectionPool(
        conninfo=dsn,
        min_size=min_size,
        max_size=max_size,
        kwargs={'autocommit': False, 'prepare_threshold': 0, 'row_factory': dict_row},
    )
