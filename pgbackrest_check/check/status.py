"""Stanza status from `pgbackrest info`."""

import json
import logging

from pgbackrest_check.check.models import ArchiveInfo, BackupEntry, BackupRecord
from pgbackrest_check.utils.exceptions import ExternalToolError
from pgbackrest_check.utils.subprocess_utils import SubprocessRunner

logger = logging.getLogger(__name__)


class PgBackRestStatusProvider:
    """Runs pgbackrest and turns its JSON output into a BackupRecord."""

    def __init__(self, config, runner=None):
        self.config = config
        self.runner = runner or SubprocessRunner(timeout=config.command_timeout)

    def build_command(self, stanza):
        cmd = [self.config.pgbackrest_bin]
        if self.config.pgbackrest_config:
            cmd.append(f'--config={self.config.pgbackrest_config}')
        cmd.extend([f'--stanza={stanza}', '--output=json', 'info'])
        return cmd

    def get_status(self, stanza):
        """
        Fetch the status of a stanza.

        Raises:
            ExternalToolError: If pgbackrest fails or its output is unusable
        """
        result = self.runner.run_command(self.build_command(stanza))
        if not result['success']:
            raise ExternalToolError(f"pgbackrest info failed: {result['error']}")

        logger.info(f"pgbackrest info returned in {result['duration']:.2f}s")
        return parse_status(stanza, result['stdout'])


def parse_status(stanza, output):
    """
    Parse the JSON document of `pgbackrest --output=json info`.

    Raises:
        ExternalToolError: If the document is malformed or lacks the stanza
    """
    try:
        document = json.loads(output)
    except ValueError as e:
        raise ExternalToolError(f"Unable to parse pgbackrest output: {e}")

    if not isinstance(document, list):
        raise ExternalToolError("Unexpected pgbackrest output: a list of stanzas was expected")

    stanza_info = next(
        (item for item in document if isinstance(item, dict) and item.get('name') == stanza),
        None
    )
    if stanza_info is None:
        raise ExternalToolError(f"Stanza '{stanza}' not found in pgbackrest output")

    try:
        status = stanza_info['status']
        backups = tuple(
            BackupEntry(
                label=backup['label'],
                type=backup['type'],
                stop=int(backup['timestamp']['stop']),
            )
            for backup in stanza_info.get('backup', [])
        )
        archive = _parse_archive(stanza_info)
        return BackupRecord(
            stanza=stanza,
            status_code=int(status['code']),
            status_message=str(status.get('message', '')),
            backups=backups,
            archive=archive,
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ExternalToolError(f"Unexpected pgbackrest output for stanza '{stanza}': {e!r}")


def version_num(version):
    """Server version as a number, '9.2' -> 90200, '12' -> 120000."""
    parts = version.split('.')
    major = int(parts[0])
    if major >= 10:
        return major * 10000
    minor = int(parts[1]) if len(parts) > 1 else 0
    return major * 10000 + minor * 100


def _parse_archive(stanza_info):
    archives = stanza_info.get('archive') or []
    if not archives:
        return None

    # the last archive entry belongs to the current database
    current = archives[-1]
    db_id = (current.get('database') or {}).get('id')
    db_version = None
    for db in stanza_info.get('db') or []:
        if db_id is not None and db.get('id') == db_id:
            db_version = db.get('version')
    if db_version is None:
        db_version = current['id'].split('-')[0]
    db_version = str(db_version)

    return ArchiveInfo(
        id=current['id'],
        min_wal=current.get('min'),
        max_wal=current.get('max'),
        db_version=db_version,
        db_version_num=version_num(db_version),
    )
