"""Configuration loader for the pgBackRest check probe."""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

from pgbackrest_check.utils.exceptions import ArgumentError
from pgbackrest_check.utils.units import parse_interval, parse_size

logger = logging.getLogger(__name__)

DEFAULT_REPO_PATH = '/var/lib/pgbackrest'
DEFAULT_WAL_SEGSIZE = 16 * 1024 * 1024
# A logical WAL file addresses 4GB of WAL
DEFAULT_WAL_FILE_SIZE = 0x100000000

# field name -> environment variable
ENV_VARS = {
    'stanza': 'STANZA',
    'service': 'SERVICE',
    'retention_full': 'RETENTION_FULL',
    'retention_age': 'RETENTION_AGE',
    'repo_path': 'REPO_PATH',
    'repo_host': 'REPO_HOST',
    'repo_host_user': 'REPO_HOST_USER',
    'ignore_archived_since': 'IGNORE_ARCHIVED_SINCE',
    'latest_archive_age_alert': 'LATEST_ARCHIVE_AGE_ALERT',
    'wal_segsize': 'WAL_SEGSIZE',
    'list_archives': 'LIST_ARCHIVES',
    'pgbackrest_bin': 'PGBACKREST_BIN',
    'pgbackrest_config': 'PGBACKREST_CONFIG',
    'command_timeout': 'COMMAND_TIMEOUT',
    'log_file': 'LOG_FILE',
}


@dataclass(frozen=True)
class ProbeConfig:
    """Immutable probe settings, passed to every component that needs them."""
    stanza: str
    service: str
    retention_full: Optional[int] = None
    retention_age: Optional[Union[int, float]] = None
    repo_path: str = DEFAULT_REPO_PATH
    repo_host: Optional[str] = None
    repo_host_user: Optional[str] = None
    ignore_archived_since: Optional[Union[int, float]] = None
    latest_archive_age_alert: Optional[Union[int, float]] = None
    wal_segsize: int = DEFAULT_WAL_SEGSIZE
    wal_file_size: int = DEFAULT_WAL_FILE_SIZE
    list_archives: bool = False
    pgbackrest_bin: str = 'pgbackrest'
    pgbackrest_config: Optional[str] = None
    command_timeout: int = 300
    log_file: Optional[str] = None


def _parse_bool(name, value):
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off', ''):
        return False
    raise ArgumentError(f"{name} must be a boolean, got '{value}'")


def _parse_int(name, value):
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ArgumentError(f"{name} must be an integer, got '{value}'")
    if number < 0:
        raise ArgumentError(f"{name} must be positive, got '{value}'")
    return number


def load_config(env_file: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> ProbeConfig:
    """
    Build the probe configuration.

    Values are taken from ``overrides`` (usually the command line) first, then
    from the environment, which ``env_file`` is loaded into.

    Raises:
        ArgumentError: If a value is malformed or a required one is missing
    """
    if env_file:
        if not os.path.exists(env_file):
            raise ArgumentError(f"Environment file not found: {env_file}")
        load_dotenv(env_file)
    else:
        load_dotenv()

    overrides = overrides or {}
    raw = {}
    for field_name, env_var in ENV_VARS.items():
        value = overrides.get(field_name)
        if value is None:
            value = os.getenv(env_var)
        if value is not None and value != '':
            raw[field_name] = value

    missing = [ENV_VARS[name] for name in ('stanza', 'service') if name not in raw]
    if missing:
        raise ArgumentError(f"Missing required settings: {', '.join(missing)}")

    settings = {
        'stanza': str(raw['stanza']),
        'service': str(raw['service']).lower(),
    }

    for name in ('repo_path', 'repo_host', 'repo_host_user', 'pgbackrest_bin',
                 'pgbackrest_config', 'log_file'):
        if name in raw:
            settings[name] = str(raw[name])

    if 'retention_full' in raw:
        settings['retention_full'] = _parse_int(ENV_VARS['retention_full'], raw['retention_full'])

    for name in ('retention_age', 'ignore_archived_since', 'latest_archive_age_alert'):
        if name in raw:
            settings[name] = parse_interval(raw[name])

    if 'command_timeout' in raw:
        timeout = parse_interval(raw['command_timeout'])
        if timeout <= 0 or timeout == float('inf'):
            raise ArgumentError(f"COMMAND_TIMEOUT must be a finite positive interval, got '{raw['command_timeout']}'")
        settings['command_timeout'] = int(timeout)

    if 'wal_segsize' in raw:
        segsize = parse_size(raw['wal_segsize'])
        if segsize <= 0 or DEFAULT_WAL_FILE_SIZE % segsize:
            raise ArgumentError(f"WAL_SEGSIZE must divide 4GB, got '{raw['wal_segsize']}'")
        settings['wal_segsize'] = segsize

    if 'list_archives' in raw:
        settings['list_archives'] = _parse_bool(ENV_VARS['list_archives'], raw['list_archives'])

    config = ProbeConfig(**settings)
    logger.debug(f"Configuration loaded for stanza '{config.stanza}', service '{config.service}'")
    return config
