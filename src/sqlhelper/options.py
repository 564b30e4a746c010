from dataclasses import dataclass

import sqlalchemy as sa
from sqlhelper.exceptions import ConfigurationError
from sqlhelper.strategy import get_available_dialects, get_strategy
from sqlhelper.strategy import get_strategy_class, is_supported_dialect

__all__ = ['DatabaseOptions', 'create_url_from_options']


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `postgresql`, `sqlite`, `mssql`

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    driver: str = None
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ConfigurationError(f'drivername must be one of: {available}')
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)

    def __repr__(self) -> str:
        return (f'DatabaseOptions(drivername={self.drivername!r}, hostname={self.hostname!r}, '
                f'database={self.database!r}, port={self.port!r}, use_pool={self.use_pool!r})')


def create_url_from_options(options: DatabaseOptions) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    return get_strategy(options.drivername).build_connection_url(options)
