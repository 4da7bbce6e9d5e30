"""Timeline history files."""

import logging
import posixpath
import re
from pathlib import Path
from typing import List, Optional

from pgbackrest_check.check.models import HistoryEntry
from pgbackrest_check.utils.exceptions import NotFoundError, ParseError
from pgbackrest_check.utils.ssh import SshSession

logger = logging.getLogger(__name__)

HISTORY_LINE_RE = re.compile(r'^(\d+)\t([0-9A-Fa-f]+)/([0-9A-Fa-f]+)\t(.*)$')


def history_filename(timeline: int) -> str:
    return f"{timeline:08X}.history"


def parse_history(content: str) -> List[HistoryEntry]:
    """
    Parse the content of a timeline history file.

    Each data line reads '<parent timeline>\\t<lsn high>/<lsn low>\\t<reason>'.
    Blank lines and '#' comments are skipped.

    Raises:
        ParseError: If a data line does not follow that layout
    """
    entries = []
    for number, line in enumerate(content.splitlines(), start=1):
        if not line.strip() or line.lstrip().startswith('#'):
            continue
        match = HISTORY_LINE_RE.match(line)
        if not match:
            raise ParseError(f"Malformed history line {number}: '{line}'")
        entries.append(HistoryEntry(
            parent_timeline=int(match.group(1)),
            lsn_high=int(match.group(2), 16),
            lsn_low=int(match.group(3), 16),
            description=match.group(4),
        ))
    return entries


class LocalHistoryReader:

    def __init__(self, directory):
        self.directory = Path(directory)

    def read(self, timeline: int) -> List[HistoryEntry]:
        path = self.directory / history_filename(timeline)
        try:
            content = path.read_text()
        except OSError as e:
            raise NotFoundError(f"Unable to read history file {path}: {e}")
        logger.debug(f"Read history file {path}")
        return parse_history(content)


class RemoteHistoryReader:
    """Reads history files over an SSH session opened by the caller."""

    def __init__(self, session: SshSession, directory: str):
        self.session = session
        self.directory = directory

    def read(self, timeline: int) -> List[HistoryEntry]:
        path = posixpath.join(self.directory, history_filename(timeline))
        result = self.session.run(['cat', path])
        if not result['success']:
            raise NotFoundError(f"Unable to read history file {path} on {self.session.host}: {result['error']}")
        logger.debug(f"Read history file {path} on {self.session.host}")
        return parse_history(result['stdout'])


def make_history_reader(directory, session: Optional[SshSession] = None):
    """Pick the history reader matching the transport: remote when a session is given."""
    if session is not None:
        return RemoteHistoryReader(session, directory)
    return LocalHistoryReader(directory)
