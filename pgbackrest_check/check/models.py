"""Records shared by the checks."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class Severity(Enum):
    """Check outcome, valued with the monitoring exit code."""
    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


@dataclass(frozen=True)
class BackupEntry:
    label: str
    type: str
    stop: int


@dataclass(frozen=True)
class ArchiveInfo:
    id: str
    min_wal: Optional[str] = None
    max_wal: Optional[str] = None
    db_version: Optional[str] = None
    db_version_num: Optional[int] = None


@dataclass(frozen=True)
class BackupRecord:
    stanza: str
    status_code: int
    status_message: str
    backups: Tuple[BackupEntry, ...] = ()
    archive: Optional[ArchiveInfo] = None


@dataclass(frozen=True)
class ArchivedFile:
    name: str
    mtime: float
    size: int
    path: str


@dataclass(frozen=True)
class HistoryEntry:
    parent_timeline: int
    lsn_high: int
    lsn_low: int
    description: str = ''

    def boundary(self, segment_size: int = 16 * 1024 * 1024) -> str:
        """WAL segment, on the parent timeline, holding the switch point."""
        return f"{self.parent_timeline:08X}{self.lsn_high:08X}{self.lsn_low // segment_size:08X}"


@dataclass(frozen=True)
class CheckResult:
    severity: Severity
    short_messages: Tuple[str, ...] = ()
    long_messages: Tuple[str, ...] = ()
    human_only_long_messages: Tuple[str, ...] = ()


def build_result(critical=(), warning=(), ok=(), long_messages=(), human_only=(),
                 unknown=()) -> CheckResult:
    """
    Assemble a CheckResult from categorized short messages.

    The severity is the worst non-empty category; its messages come first,
    followed by the lesser ones.
    """
    if unknown:
        severity = Severity.UNKNOWN
    elif critical:
        severity = Severity.CRITICAL
    elif warning:
        severity = Severity.WARNING
    else:
        severity = Severity.OK

    short = tuple(unknown) + tuple(critical) + tuple(warning)
    if severity is Severity.OK:
        short = tuple(ok)

    return CheckResult(
        severity=severity,
        short_messages=short,
        long_messages=tuple(long_messages),
        human_only_long_messages=tuple(human_only),
    )
