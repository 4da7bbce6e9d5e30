"""Test doubles shared by the test modules."""

from pgbackrest_check.check.models import ArchivedFile

SUFFIX = '-4f1a3c0b2d9e8f7a6b5c4d3e2f1a0b9c8d7e6f5a.gz'


def command_result(stdout='', returncode=0, stderr=''):
    """A result dict shaped like SubprocessRunner.run_command's."""
    return {
        'success': returncode == 0,
        'error': None if returncode == 0 else f"Command failed with exit code {returncode}",
        'duration': 0.01,
        'returncode': returncode,
        'stdout': stdout,
        'stderr': stderr,
    }


class FakeRunner:
    """Records commands and answers them from a script of results."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.commands = []

    def run_command(self, cmd):
        self.commands.append(cmd)
        if self.responses:
            return self.responses.pop(0)
        return command_result()


class FakeHistoryReader:

    def __init__(self, entries=None, error=None):
        self.entries = entries or []
        self.error = error
        self.timelines = []

    def read(self, timeline):
        self.timelines.append(timeline)
        if self.error:
            raise self.error
        return self.entries


def segment(name, mtime=1000.0, size=1024):
    """An archived segment as pgBackRest names it."""
    filename = name + SUFFIX
    return ArchivedFile(name=filename, mtime=mtime, size=size, path=f"/repo/{name[:16]}/{filename}")
