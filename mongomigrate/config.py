"""
Loading and saving the .env configuration file.

Values already present in the process environment override the file, the
same precedence load_dotenv uses.
"""
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from dotenv import dotenv_values
from pydantic import ValidationError

from mongomigrate.base import ConnectionConfig, DeploymentType, MigrationOptions
from mongomigrate.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = '.env'
ENV_FILE_VARIABLE = 'MONGOMIGRATE_ENV_FILE'

CONFIG_KEYS = (
    'SOURCE_MONGODB_URI', 'SOURCE_DEPLOYMENT_TYPE', 'SOURCE_REPLICA_SET', 'SOURCE_API_KEY',
    'TARGET_MONGODB_URI', 'TARGET_DEPLOYMENT_TYPE', 'TARGET_REPLICA_SET', 'TARGET_API_KEY',
    'TARGET_PROJECT_ID', 'BATCH_SIZE', 'CONCURRENCY', 'TIMEOUT_MS', 'LOG_LEVEL',
)


def resolve_env_path(env_path: Optional[Union[str, Path]] = None) -> Path:
    if env_path:
        return Path(env_path)
    return Path(os.environ.get(ENV_FILE_VARIABLE, DEFAULT_ENV_FILE))


def read_values(env_path: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """Raw key/values from the file, overridden by the process environment."""
    path = resolve_env_path(env_path)
    values = {k: v for k, v in dotenv_values(path).items() if v not in (None, '')} if path.exists() else {}
    for key in CONFIG_KEYS:
        if os.environ.get(key):
            values[key] = os.environ[key]
    return values


def _int(values: Dict[str, str], key: str, default: int) -> int:
    raw = values.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def _connection(values: Dict[str, str], prefix: str) -> ConnectionConfig:
    deployment_type = values.get(f'{prefix}_DEPLOYMENT_TYPE', DeploymentType.STANDALONE.value)
    try:
        return ConnectionConfig(
            uri=values.get(f'{prefix}_MONGODB_URI', ''),
            deployment_type=deployment_type,
            replica_set=values.get(f'{prefix}_REPLICA_SET'),
            api_key=values.get(f'{prefix}_API_KEY'),
            project_id=values.get(f'{prefix}_PROJECT_ID'),
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid {prefix.lower()} connection settings: {e}") from e


def load_config(env_path: Optional[Union[str, Path]] = None) -> Tuple[ConnectionConfig, ConnectionConfig, MigrationOptions]:
    """
    Read connection settings and default migration options.

    Returns:
        (source, target, options)

    Raises:
        ConfigError: a URI is missing, a deployment type is unknown or a number is invalid
    """
    values = read_values(env_path)
    source = _connection(values, 'SOURCE')
    target = _connection(values, 'TARGET')
    try:
        options = MigrationOptions(
            batch_size=_int(values, 'BATCH_SIZE', 1000),
            concurrency=_int(values, 'CONCURRENCY', 5),
            timeout_ms=_int(values, 'TIMEOUT_MS', 30000),
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid migration settings: {e}") from e
    return source, target, options


def load_log_level(env_path: Optional[Union[str, Path]] = None) -> str:
    return read_values(env_path).get('LOG_LEVEL', 'info')


def _line(key: str, value: Optional[object]) -> str:
    if value is None or value == '':
        return f'# {key}='
    return f'{key}={value}'


def render_config(source: ConnectionConfig, target: ConnectionConfig,
                  options: MigrationOptions, log_level: str = 'info') -> str:
    lines: List[str] = [
        '# Source MongoDB',
        _line('SOURCE_MONGODB_URI', source.uri),
        _line('SOURCE_DEPLOYMENT_TYPE', source.deployment_type.value),
        _line('SOURCE_REPLICA_SET', source.replica_set),
        _line('SOURCE_API_KEY', source.api_key),
        '',
        '# Target MongoDB',
        _line('TARGET_MONGODB_URI', target.uri),
        _line('TARGET_DEPLOYMENT_TYPE', target.deployment_type.value),
        _line('TARGET_REPLICA_SET', target.replica_set),
        _line('TARGET_API_KEY', target.api_key),
        _line('TARGET_PROJECT_ID', target.project_id),
        '',
        '# Migration settings',
        _line('BATCH_SIZE', options.batch_size),
        _line('CONCURRENCY', options.concurrency),
        _line('TIMEOUT_MS', options.timeout_ms),
        '',
        '# Logging',
        _line('LOG_LEVEL', log_level),
    ]
    return '\n'.join(lines) + '\n'


def save_config(source: ConnectionConfig, target: ConnectionConfig, options: MigrationOptions,
                env_path: Optional[Union[str, Path]] = None, log_level: str = 'info') -> Path:
    path = resolve_env_path(env_path)
    path.write_text(render_config(source, target, options, log_level), encoding='utf-8')
    logger.info(f"Configuration saved to {path}")
    return path


def load_source_config(env_path: Optional[Union[str, Path]] = None) -> ConnectionConfig:
    """Source settings only, for commands that never touch the target."""
    return _connection(read_values(env_path), 'SOURCE')
