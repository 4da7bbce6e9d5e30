"""Tests for the check kinds, wired end to end on a local repository."""

import os

import pytest

from helpers import SUFFIX, FakeRunner, command_result
from pgbackrest_check.check.models import ArchiveInfo, BackupEntry, BackupRecord, Severity
from pgbackrest_check.check.services import (
    ArchivesCheck,
    CheckContext,
    CheckKind,
    RetentionCheck,
)
from pgbackrest_check.utils.config import ProbeConfig
from pgbackrest_check.utils.exceptions import ArgumentError, ExternalToolError
from pgbackrest_check.utils.ssh import SshSession

NOW = 1700000000.0


class FakeStatusProvider:

    def __init__(self, record=None, error=None):
        self.record = record
        self.error = error
        self.stanzas = []

    def get_status(self, stanza):
        self.stanzas.append(stanza)
        if self.error:
            raise self.error
        return self.record


def make_record(archive=None, backups=()):
    return BackupRecord(stanza="main", status_code=0, status_message="ok", backups=backups, archive=archive)


def write_segments(directory, *names, age=120):
    for name in names:
        wal_dir = directory / name[:16]
        wal_dir.mkdir(parents=True, exist_ok=True)
        path = wal_dir / (name + SUFFIX)
        path.write_bytes(b"wal")
        os.utime(path, (NOW - age, NOW - age))


@pytest.fixture
def repo(tmp_path):
    return tmp_path


def archives_config(repo, **kwargs):
    return ProbeConfig(stanza="main", service="archives", repo_path=str(repo), **kwargs)


class TestCheckKind:

    def test_from_name(self):
        assert CheckKind.from_name("archives") is CheckKind.ARCHIVES
        assert CheckKind.from_name("retention") is CheckKind.RETENTION

    def test_unknown_service(self):
        with pytest.raises(ArgumentError, match="archives, retention|retention, archives"):
            CheckKind.from_name("backups")

    def test_build(self, repo):
        assert isinstance(CheckKind.ARCHIVES.build(archives_config(repo)), ArchivesCheck)
        config = ProbeConfig(stanza="main", service="retention", retention_full=1)
        assert isinstance(CheckKind.RETENTION.build(config), RetentionCheck)

    def test_retention_without_threshold(self):
        with pytest.raises(ArgumentError):
            CheckKind.RETENTION.build(ProbeConfig(stanza="main", service="retention"))


class TestRetentionCheck:

    def test_run(self):
        provider = FakeStatusProvider(make_record(backups=(
            BackupEntry("20231114-000000F", "full", int(NOW) - 3600),
        )))
        config = ProbeConfig(stanza="main", service="retention", retention_full=1, retention_age=86400)

        result = RetentionCheck(config).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.OK
        assert provider.stanzas == ["main"]

    def test_provider_failure_propagates(self):
        provider = FakeStatusProvider(error=ExternalToolError("pgbackrest info failed"))
        config = ProbeConfig(stanza="main", service="retention", retention_full=1)

        with pytest.raises(ExternalToolError):
            RetentionCheck(config).run(CheckContext(status_provider=provider, now=NOW))


class TestArchivesCheck:

    def test_archive_directory(self, repo):
        check = ArchivesCheck(archives_config(repo))
        assert check.archive_directory("12-1") == f"{repo}/archive/main/12-1"

    def test_continuous_archives(self, repo):
        archive_dir = repo / "archive" / "main" / "12-1"
        write_segments(archive_dir, "000000010000000000000001", "000000010000000000000002", "000000010000000000000003")
        provider = FakeStatusProvider(make_record(ArchiveInfo(
            "12-1", "000000010000000000000001", "000000010000000000000003", "12", 120000
        )))

        result = ArchivesCheck(archives_config(repo)).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.OK
        assert "num_archives=3" in result.long_messages
        assert "latest_archive_age=120s" in result.long_messages

    def test_timeline_switch_with_history_file(self, repo):
        archive_dir = repo / "archive" / "main" / "12-1"
        write_segments(archive_dir, "000000010000000000000001", "000000010000000000000002",
                       "000000020000000000000003", "000000020000000000000004")
        (archive_dir / "00000002.history").write_text("1\t0/3000060\tno recovery target specified\n")
        provider = FakeStatusProvider(make_record(ArchiveInfo("12-1", db_version="12", db_version_num=120000)))

        result = ArchivesCheck(archives_config(repo)).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.OK

    def test_timeline_switch_without_history_file(self, repo):
        archive_dir = repo / "archive" / "main" / "12-1"
        write_segments(archive_dir, "000000010000000000000001", "000000020000000000000002")
        provider = FakeStatusProvider(make_record(ArchiveInfo("12-1", db_version="12", db_version_num=120000)))

        result = ArchivesCheck(archives_config(repo)).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.CRITICAL
        assert "wrong sequence or missing file @ '000000010000000000000002'" in result.short_messages

    def test_reserved_segment_on_old_servers(self, repo):
        archive_dir = repo / "archive" / "main" / "9.2-1"
        write_segments(archive_dir, "0000000100000000000000FD", "0000000100000000000000FE", "000000010000000100000000")
        provider = FakeStatusProvider(make_record(ArchiveInfo("9.2-1", db_version="9.2", db_version_num=90200)))

        result = ArchivesCheck(archives_config(repo)).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.OK

    def test_latest_archive_age_alert(self, repo):
        archive_dir = repo / "archive" / "main" / "12-1"
        write_segments(archive_dir, "000000010000000000000001", age=7200)
        provider = FakeStatusProvider(make_record(ArchiveInfo("12-1", db_version="12", db_version_num=120000)))
        config = archives_config(repo, latest_archive_age_alert=3600)

        result = ArchivesCheck(config).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.CRITICAL

    def test_no_archive_found(self, repo):
        (repo / "archive" / "main" / "12-1").mkdir(parents=True)
        provider = FakeStatusProvider(make_record(ArchiveInfo("12-1", db_version="12", db_version_num=120000)))

        result = ArchivesCheck(archives_config(repo)).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.UNKNOWN
        assert result.short_messages[0].startswith("No archived WAL found")

    def test_all_archives_ignored(self, repo):
        archive_dir = repo / "archive" / "main" / "12-1"
        write_segments(archive_dir, "000000010000000000000001", age=30)
        provider = FakeStatusProvider(make_record(ArchiveInfo("12-1", db_version="12", db_version_num=120000)))
        config = archives_config(repo, ignore_archived_since=60)

        result = ArchivesCheck(config).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.UNKNOWN

    def test_no_archive_information(self, repo):
        provider = FakeStatusProvider(make_record(archive=None))

        result = ArchivesCheck(archives_config(repo)).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.UNKNOWN
        assert result.short_messages == ("no archive information for stanza main",)


REMOTE_FIND_OUTPUT = "".join(
    f"{NOW - 120} 16777216 /repo/archive/main/12-1/{name[:16]}/{name}{SUFFIX}\n"
    for name in ("000000010000000000000001", "000000010000000000000002",
                 "000000020000000000000003", "000000020000000000000004")
) + f"{NOW - 120} 60 /repo/archive/main/12-1/00000002.history\n"


class TestRemoteArchivesCheck:

    def remote_config(self, **kwargs):
        return ProbeConfig(stanza="main", service="archives", repo_path="/repo",
                           repo_host="backup.example.com", repo_host_user="pgbackrest", **kwargs)

    def test_open_session(self, repo):
        assert isinstance(ArchivesCheck(self.remote_config()).open_session(), SshSession)
        assert not isinstance(ArchivesCheck(archives_config(repo)).open_session(), SshSession)

    def test_timeline_switch_uses_one_session(self):
        runner = FakeRunner(
            command_result(),
            command_result(),
            command_result(stdout=REMOTE_FIND_OUTPUT),
            command_result(stdout="1\t0/3000060\tno recovery target specified\n"),
            command_result(),
        )
        provider = FakeStatusProvider(make_record(ArchiveInfo("12-1", db_version="12", db_version_num=120000)))

        result = ArchivesCheck(self.remote_config(), runner=runner).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.OK
        assert [cmd for cmd in runner.commands if "-M" in cmd] == [runner.commands[0]]
        assert [cmd for cmd in runner.commands if cmd[-3:-1] == ["-O", "exit"]] == [runner.commands[-1]]
        assert runner.commands[3][-1] == "cat /repo/archive/main/12-1/00000002.history"
        assert len(runner.commands) == 5

    def test_missing_remote_directory(self):
        runner = FakeRunner(
            command_result(),
            command_result(returncode=1, stderr="No such file or directory"),
            command_result(),
        )
        provider = FakeStatusProvider(make_record(ArchiveInfo("12-1", db_version="12", db_version_num=120000)))

        result = ArchivesCheck(self.remote_config(), runner=runner).run(CheckContext(status_provider=provider, now=NOW))

        assert result.severity is Severity.UNKNOWN
        assert result.short_messages[0].startswith("Archive directory unavailable")
        assert runner.commands[-1][-3:] == ["-O", "exit", "backup.example.com"]
