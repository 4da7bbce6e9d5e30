"""Scoped SSH session to the repository host."""

import logging
import shlex
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Union

from pgbackrest_check.utils.exceptions import ConnectionError
from pgbackrest_check.utils.subprocess_utils import SubprocessRunner

logger = logging.getLogger(__name__)

# ssh exits with 255 when the connection itself fails
SSH_ERROR_STATUS = 255


class SshSession:
    """
    Context manager holding one OpenSSH control-master connection.

    Commands run through ``run()`` are multiplexed over the master
    connection. The master is always closed on exit, whatever happened in
    the ``with`` block.
    """

    def __init__(self, host: str, user: Optional[str] = None, runner: Optional[SubprocessRunner] = None):
        self.host = host
        self.user = user
        self.runner = runner or SubprocessRunner(timeout=60)
        self._control_dir = None
        self._control_path = None
        self._opened = False

    def _base_cmd(self) -> List[str]:
        cmd = ['ssh', '-o', 'BatchMode=yes', '-S', str(self._control_path)]
        if self.user:
            cmd.extend(['-l', self.user])
        return cmd

    def __enter__(self):
        self._control_dir = tempfile.mkdtemp(prefix='pgbackrest-check-')
        self._control_path = Path(self._control_dir) / 'control.sock'

        logger.debug(f"Opening SSH session to {self.host}")
        result = self.runner.run_command(
            self._base_cmd() + ['-M', '-f', '-N', '-o', 'ControlPersist=yes', self.host]
        )
        if not result['success']:
            shutil.rmtree(self._control_dir, ignore_errors=True)
            self._control_dir = None
            raise ConnectionError(f"Could not connect to {self.host}: {result['error']}")

        self._opened = True
        return self

    def run(self, cmd: List[str]) -> Dict[str, Union[bool, str, float, int]]:
        """
        Run a command on the remote host.

        Returns the runner result dict. A non-zero exit of the remote command
        is left to the caller.

        Raises:
            ConnectionError: If the session is closed or ssh itself failed
        """
        if not self._opened:
            raise ConnectionError(f"SSH session to {self.host} is not open")

        result = self.runner.run_command(self._base_cmd() + [self.host, '--', shlex.join(cmd)])
        if result['returncode'] in (SSH_ERROR_STATUS, -1):
            raise ConnectionError(f"SSH session to {self.host} failed: {result['error']}")
        return result

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._opened:
            logger.debug(f"Closing SSH session to {self.host}")
            result = self.runner.run_command(self._base_cmd() + ['-O', 'exit', self.host])
            if not result['success']:
                logger.warning(f"Failed to close SSH session to {self.host}: {result['error']}")
            self._opened = False

        if self._control_dir:
            shutil.rmtree(self._control_dir, ignore_errors=True)
            self._control_dir = None
