"""Available checks and how to run them."""

import contextlib
import logging
import posixpath
from dataclasses import dataclass
from enum import Enum

from pgbackrest_check.check.history import make_history_reader
from pgbackrest_check.check.listing import make_lister
from pgbackrest_check.check.models import CheckResult, build_result
from pgbackrest_check.check.retention import RetentionEvaluator
from pgbackrest_check.check.wal import WalSequenceValidator, segments_per_wal
from pgbackrest_check.utils.exceptions import ArgumentError, NotFoundError
from pgbackrest_check.utils.ssh import SshSession
from pgbackrest_check.utils.subprocess_utils import SubprocessRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckContext:
    """What a check needs at run time besides its configuration."""
    status_provider: object
    now: float


class RetentionCheck:

    def __init__(self, config):
        self.config = config
        self.evaluator = RetentionEvaluator(config.retention_full, config.retention_age)

    def run(self, context: CheckContext) -> CheckResult:
        record = context.status_provider.get_status(self.config.stanza)
        return self.evaluator.evaluate(record, now=context.now)


class ArchivesCheck:

    def __init__(self, config, runner=None):
        self.config = config
        self.runner = runner

    def archive_directory(self, archive_id: str) -> str:
        return posixpath.join(self.config.repo_path, 'archive', self.config.stanza, archive_id)

    def open_session(self):
        """
        One SSH session to the repository host, shared by the listing and
        the history reads. Nothing to open for a local repository.
        """
        if not self.config.repo_host:
            return contextlib.nullcontext()
        runner = self.runner or SubprocessRunner(timeout=self.config.command_timeout)
        return SshSession(self.config.repo_host, self.config.repo_host_user, runner=runner)

    def run(self, context: CheckContext) -> CheckResult:
        record = context.status_provider.get_status(self.config.stanza)
        if record.archive is None:
            return build_result(unknown=[f"no archive information for stanza {record.stanza}"])

        directory = self.archive_directory(record.archive.id)
        logger.info(f"Checking WAL archives in {directory}")
        with self.open_session() as session:
            try:
                files = make_lister(session).list(
                    directory,
                    ignore_since=self.config.ignore_archived_since,
                    now=context.now
                )
            except NotFoundError as e:
                return build_result(unknown=[str(e)])

            validator = WalSequenceValidator(
                segments_per_wal(self.config.wal_segsize, self.config.wal_file_size, record.archive.db_version_num),
                history_reader=make_history_reader(directory, session),
                segment_size=self.config.wal_segsize,
                max_age=self.config.latest_archive_age_alert,
                list_archives=self.config.list_archives,
            )
            return validator.validate(files, record.archive.min_wal, record.archive.max_wal, now=context.now)


class CheckKind(Enum):
    RETENTION = 'retention'
    ARCHIVES = 'archives'

    @classmethod
    def from_name(cls, name: str) -> 'CheckKind':
        try:
            return cls(name)
        except ValueError:
            choices = ', '.join(kind.value for kind in cls)
            raise ArgumentError(f"Unknown service '{name}', expected one of: {choices}")

    def build(self, config):
        """Create the check, validating its configuration."""
        if self is CheckKind.RETENTION:
            return RetentionCheck(config)
        return ArchivesCheck(config)
