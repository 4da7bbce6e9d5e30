"""Retention policy check - enough full backups, recent enough."""

import logging
import time
from typing import Optional

from pgbackrest_check.check.models import BackupRecord, CheckResult, build_result
from pgbackrest_check.utils.exceptions import ArgumentError
from pgbackrest_check.utils.units import format_interval

logger = logging.getLogger(__name__)

BACKUP_TYPES = ('full', 'diff', 'incr')


class RetentionEvaluator:
    """
    Apply retention thresholds to the backups of a stanza.

    Args:
        retention_full: Minimum number of full backups
        retention_age: Maximum age of the latest backup, in seconds

    Raises:
        ArgumentError: If no threshold is given
    """

    def __init__(self, retention_full: Optional[int] = None, retention_age: Optional[float] = None):
        if retention_full is None and retention_age is None:
            raise ArgumentError("retention check requires RETENTION_FULL and/or RETENTION_AGE")
        self.retention_full = retention_full
        self.retention_age = retention_age

    def evaluate(self, record: BackupRecord, now: Optional[float] = None) -> CheckResult:
        if now is None:
            now = time.time()

        counts = {backup_type: 0 for backup_type in BACKUP_TYPES}
        for backup in record.backups:
            if backup.type in counts:
                counts[backup.type] += 1
            else:
                logger.warning(f"Unknown backup type '{backup.type}' for {backup.label}")

        critical = []
        long_messages = [f"{backup_type}={counts[backup_type]}" for backup_type in BACKUP_TYPES]

        if not record.backups:
            critical.append(f"no backup found (stanza status: {record.status_message})")
            return build_result(critical=critical, long_messages=long_messages)

        latest = record.backups[-1]
        latest_age = int(now - latest.stop)
        long_messages.append(f"latest={latest.type},{latest.label}")
        long_messages.append(f"latest_age={format_interval(latest_age)}")

        if self.retention_full is not None and counts['full'] < self.retention_full:
            critical.append(f"not enough full backups: {counts['full']} < {self.retention_full}")

        if self.retention_age is not None and latest_age >= self.retention_age:
            critical.append(
                f"backups are too old: {format_interval(latest_age)} >= {format_interval(self.retention_age)}"
            )

        logger.info(
            f"Stanza {record.stanza}: {counts['full']} full, {counts['diff']} diff, "
            f"{counts['incr']} incr, latest {latest.label} ({format_interval(latest_age)} old)"
        )
        return build_result(
            critical=critical,
            ok=["backups policy checks ok"],
            long_messages=long_messages,
        )
