"""
Database configuration for the Tasks service.

Supports:
- Local development and tests (SQLite)
- PostgreSQL via DATABASE_URL or individual DB_* variables
- AWS Lambda behind RDS Proxy (no persistent connections)
"""
import os
import re
from pathlib import Path

# Queries running longer than this are cancelled by PostgreSQL and
# surface to clients as deadline_exceeded.
STATEMENT_TIMEOUT_MS = int(os.getenv('DB_STATEMENT_TIMEOUT_MS', '30000'))
CONNECT_TIMEOUT_SECONDS = int(os.getenv('DB_CONNECT_TIMEOUT', '5'))


def get_database_config(base_dir: Path) -> dict:
    """
    Returns the Django DATABASES['default'] entry for this environment.

    Resolution order:
    1. DATABASE_URL (postgres:// or postgresql://)
    2. DB_HOST and friends
    3. SQLite file next to the project
    """
    database_url = os.getenv('DATABASE_URL', '')

    if database_url and database_url.startswith('postgres'):
        return _with_postgres_options(_parse_database_url(database_url))

    if os.getenv('DB_HOST'):
        return _with_postgres_options(_get_env_config())

    return {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.getenv('SQLITE_PATH', str(base_dir / 'db.sqlite3')),
    }


def _parse_database_url(url: str) -> dict:
    """Parse a PostgreSQL DATABASE_URL into Django config."""
    pattern = (
        r'postgres(?:ql)?://(?P<user>[^:]+):(?P<password>[^@]+)'
        r'@(?P<host>[^:/]+)(?::(?P<port>\d+))?/(?P<name>[^?]+)'
    )
    match = re.match(pattern, url)

    if not match:
        raise ValueError("Invalid DATABASE_URL format")

    return {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': match.group('name'),
        'USER': match.group('user'),
        'PASSWORD': match.group('password'),
        'HOST': match.group('host'),
        'PORT': match.group('port') or '5432',
    }


def _get_env_config() -> dict:
    """Build config from individual environment variables."""
    config = {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('DB_NAME', 'tasks'),
        'USER': os.getenv('DB_USER', 'postgres'),
        'HOST': os.getenv('DB_HOST', 'localhost'),
        'PORT': os.getenv('DB_PORT', '5432'),
    }

    password = os.getenv('DB_PASSWORD')
    if password:
        config['PASSWORD'] = password

    if os.getenv('DB_SSLMODE'):
        config['OPTIONS'] = {'sslmode': os.getenv('DB_SSLMODE')}

    return config


def _with_postgres_options(config: dict) -> dict:
    options = config.setdefault('OPTIONS', {})
    options['connect_timeout'] = CONNECT_TIMEOUT_SECONDS
    options['options'] = f'-c statement_timeout={STATEMENT_TIMEOUT_MS}'

    # RDS Proxy handles pooling on Lambda
    if os.getenv('AWS_LAMBDA_FUNCTION_NAME'):
        config['CONN_MAX_AGE'] = 0
    else:
        config['CONN_MAX_AGE'] = int(os.getenv('DB_CONN_MAX_AGE', '60'))

    return config
