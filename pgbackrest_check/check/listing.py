"""Archived WAL enumeration, on the local filesystem or through SSH."""

import logging
import os
import posixpath
import re
import time
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional

from pgbackrest_check.check.models import ArchivedFile
from pgbackrest_check.utils.exceptions import ConnectionError, NotFoundError
from pgbackrest_check.utils.ssh import SshSession
from pgbackrest_check.utils.subprocess_utils import validate_path

logger = logging.getLogger(__name__)

WAL_ARCHIVE_RE = re.compile(r'^[0-9A-F]{24}.*\.gz$')


class BaseLister(ABC):
    """All listers implement this interface."""

    @abstractmethod
    def _walk(self, directory: str) -> Iterator[ArchivedFile]:
        """Yield every file found under the directory."""
        ...

    def list(self,
             directory: str,
             pattern: re.Pattern = WAL_ARCHIVE_RE,
             ignore_since: Optional[float] = None,
             now: Optional[float] = None) -> List[ArchivedFile]:
        """
        List archived files under a directory, sorted by name.

        Files modified less than ``ignore_since`` seconds before ``now`` are
        skipped.

        Raises:
            NotFoundError: If no file remains
            ConnectionError: If the remote listing failed
        """
        if now is None:
            now = time.time()

        files = []
        ignored = 0
        for archived in self._walk(directory):
            if not pattern.match(archived.name):
                continue
            if ignore_since is not None and archived.mtime > now - ignore_since:
                ignored += 1
                continue
            files.append(archived)

        if ignored:
            logger.info(f"Ignored {ignored} archive(s) modified in the last {ignore_since}s")

        if not files:
            raise NotFoundError(f"No archived WAL found in {directory}")

        files.sort(key=lambda archived: archived.name)
        logger.info(f"Found {len(files)} archived WAL in {directory}")
        return files


class LocalLister(BaseLister):

    def _walk(self, directory):
        try:
            root_dir = validate_path(directory, must_exist=True)
        except ValueError as e:
            raise NotFoundError(f"Archive directory unavailable: {e}")

        for root, _dirs, filenames in os.walk(root_dir):
            for filename in filenames:
                path = os.path.join(root, filename)
                try:
                    stat = os.stat(path)
                except FileNotFoundError:
                    # expired while walking
                    continue
                yield ArchivedFile(name=filename, mtime=stat.st_mtime, size=stat.st_size, path=path)


class RemoteLister(BaseLister):
    """Lists files over an SSH session opened by the caller."""

    def __init__(self, session: SshSession):
        self.session = session

    def _walk(self, directory):
        if not self.session.run(['test', '-d', directory])['success']:
            raise NotFoundError(f"Archive directory unavailable on {self.session.host}: {directory}")

        result = self.session.run(['find', directory, '-type', 'f', '-printf', r'%T@ %s %p\n'])
        if not result['success']:
            raise ConnectionError(
                f"Remote listing of {directory} on {self.session.host} failed: {result['error']}"
            )

        for line in result['stdout'].splitlines():
            if line.strip():
                yield parse_find_line(line)


def parse_find_line(line: str) -> ArchivedFile:
    """
    Parse a '<mtime> <size> <path>' line printed by find.

    Raises:
        ConnectionError: If the line is malformed
    """
    parts = line.split(' ', 2)
    try:
        mtime, size, path = float(parts[0]), int(parts[1]), parts[2]
    except (IndexError, ValueError):
        raise ConnectionError(f"Unexpected line in remote listing: '{line}'")
    return ArchivedFile(name=posixpath.basename(path), mtime=mtime, size=size, path=path)


def make_lister(session: Optional[SshSession] = None) -> BaseLister:
    """Pick the lister matching the transport: remote when a session is given."""
    if session is not None:
        return RemoteLister(session)
    return LocalLister()
