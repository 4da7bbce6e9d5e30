"""
WAL archive continuity.

Archived segments are named after a 24 hex digit identifier made of three
fixed-width fields: timeline, WAL number and segment number. Because every
field is zero-padded, sorting names as strings sorts segments in WAL order,
and the whole validation only ever compares rendered identifiers.
"""

import logging
import re
import time
from typing import List, Optional, Sequence, Tuple

from pgbackrest_check.check.models import ArchivedFile, CheckResult, build_result
from pgbackrest_check.utils.config import DEFAULT_WAL_FILE_SIZE, DEFAULT_WAL_SEGSIZE
from pgbackrest_check.utils.exceptions import NotFoundError, ParseError
from pgbackrest_check.utils.units import format_interval

logger = logging.getLogger(__name__)

SEGMENT_NAME_RE = re.compile(r'^([0-9A-F]{8})([0-9A-F]{8})([0-9A-F]{8})')


def parse_segment_name(name: str) -> Tuple[int, int, int]:
    """
    Decode (timeline, wal number, segment number) from a segment filename.

    Raises:
        ParseError: If the name does not start with 24 uppercase hex digits
    """
    match = SEGMENT_NAME_RE.match(name)
    if not match:
        raise ParseError(f"Not a WAL segment name: '{name}'")
    return tuple(int(field, 16) for field in match.groups())


def format_segment_name(timeline: int, wal: int, segment: int) -> str:
    return f"{timeline:08X}{wal:08X}{segment:08X}"


def segments_per_wal(segment_size: int = DEFAULT_WAL_SEGSIZE,
                     wal_file_size: int = DEFAULT_WAL_FILE_SIZE,
                     db_version_num: Optional[int] = None) -> int:
    """Number of segments in one WAL file. Up to 9.2 the last one is never used."""
    count = wal_file_size // segment_size
    if db_version_num is not None and db_version_num <= 90200:
        count -= 1
    return count


class WalSequenceValidator:
    """
    Checks that archived segments form an unbroken sequence.

    The expected identifier is computed for each archived file in turn,
    starting from the oldest one. When the sequence crosses a timeline
    switch, the switch points are read from the history file of the last
    timeline.
    """

    def __init__(self,
                 segments_per_wal: int,
                 history_reader=None,
                 segment_size: int = DEFAULT_WAL_SEGSIZE,
                 max_age: Optional[float] = None,
                 list_archives: bool = False):
        if segments_per_wal < 1:
            raise ValueError("segments_per_wal must be at least 1")
        self.segments_per_wal = segments_per_wal
        self.history_reader = history_reader
        self.segment_size = segment_size
        self.max_age = max_age
        self.list_archives = list_archives

    def read_boundaries(self, timeline: int) -> List[str]:
        """
        Segments where the history of ``timeline`` switched timelines.

        Raises:
            NotFoundError: If no history is available
            ParseError: If the history file is malformed
        """
        if self.history_reader is None:
            raise NotFoundError(f"No history reader to resolve timeline {timeline:08X}")
        entries = self.history_reader.read(timeline)
        boundaries = [entry.boundary(self.segment_size) for entry in entries]
        logger.debug(f"Timeline {timeline:08X} boundaries: {', '.join(boundaries) or 'none'}")
        return boundaries

    def validate(self,
                 files: Sequence[ArchivedFile],
                 min_wal: Optional[str] = None,
                 max_wal: Optional[str] = None,
                 now: Optional[float] = None) -> CheckResult:
        if now is None:
            now = time.time()

        files = sorted(files, key=lambda archived: archived.name)
        if not files:
            return build_result(unknown=["no archived WAL found"])

        names = [archived.name[:24] for archived in files]
        first, last = files[0], files[-1]
        latest_age = int(now - last.mtime)

        critical = []
        warning = []
        long_messages = [f"latest_archive_age={latest_age}s", f"num_archives={len(files)}"]
        human_only = [
            f"min_wal={min_wal or 'unknown'}",
            f"max_wal={max_wal or 'unknown'}",
            f"oldest_archive={first.name}",
            f"latest_archive={last.name}",
        ]
        if self.list_archives:
            human_only.extend(f"archive={archived.name}" for archived in files)

        def result():
            return build_result(
                critical=critical,
                warning=warning,
                ok=[f"{len(files)} WAL archived", f"latest archived since {format_interval(latest_age)}"],
                long_messages=long_messages,
                human_only=human_only,
            )

        present = set(names)
        if min_wal and min_wal not in present:
            critical.append(f"min WAL not found: {min_wal}")
        if max_wal and max_wal not in present:
            critical.append(f"max WAL not found: {max_wal}")
        if critical:
            return result()

        if min_wal and names[0] != min_wal:
            warning.append(f"min WAL is not the oldest archive: {names[0]}")
        if max_wal and names[-1] != max_wal:
            warning.append(f"max WAL is not the latest archive: {names[-1]}")

        timeline, wal, segment = parse_segment_name(first.name)
        end_timeline = parse_segment_name(last.name)[0]

        boundaries = set()
        unresolved = None
        if end_timeline != timeline:
            logger.info(f"Timeline switch from {timeline:08X} to {end_timeline:08X} in the archives")
            try:
                boundaries = set(self.read_boundaries(end_timeline))
            except (NotFoundError, ParseError) as e:
                logger.warning(f"Timeline boundary unresolved: {e}")
                unresolved = str(e)

        for name in names:
            expected = format_segment_name(timeline, wal, segment)
            # several switches may happen within one segment
            while expected in boundaries:
                logger.debug(f"Timeline switch at {expected}")
                boundaries.discard(expected)
                timeline += 1
                expected = format_segment_name(timeline, wal, segment)

            if name != expected:
                logger.error(f"Expected {expected}, found {name}")
                critical.append(f"wrong sequence or missing file @ '{expected}'")
                if unresolved:
                    critical.append(f"timeline boundary unresolved: {unresolved}")
                return result()

            segment += 1
            if segment >= self.segments_per_wal:
                segment = 0
                wal += 1

        if self.max_age is not None and latest_age > self.max_age:
            critical.append(
                f"latest_archive_age ({format_interval(latest_age)}) exceeded "
                f"{format_interval(self.max_age)}"
            )

        return result()
