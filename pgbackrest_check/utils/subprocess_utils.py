"""Common subprocess utilities shared by the status provider and SSH sessions."""

import logging
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Union

logger = logging.getLogger(__name__)


class SubprocessRunner:
    """Common subprocess execution with consistent error handling."""

    def __init__(self, timeout: int = 300):
        self.timeout = timeout

    def run_command(self, cmd: List[str]) -> Dict[str, Union[bool, str, float, int]]:
        """
        Execute command with consistent error handling.

        Returns dict with keys: success, error, duration, returncode, stdout, stderr
        """
        result = {
            'success': False,
            'error': None,
            'duration': 0,
            'returncode': -1,
            'stdout': '',
            'stderr': ''
        }

        logger.debug(f"Running command: {' '.join(cmd)}")
        start = time.time()
        try:
            process = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
            result['duration'] = time.time() - start
            result['returncode'] = process.returncode
            result['stdout'] = process.stdout
            result['stderr'] = process.stderr

            if process.returncode == 0:
                result['success'] = True
            else:
                result['error'] = f"Command failed with exit code {process.returncode}"
                if process.stderr:
                    result['error'] += f"\nSTDERR: {process.stderr.strip()}"

        except subprocess.TimeoutExpired:
            result['duration'] = time.time() - start
            result['error'] = f"Command timed out after {self.timeout} seconds"
        except FileNotFoundError:
            result['error'] = f"Command not found: {cmd[0] if cmd else 'unknown'}"
        except OSError as e:
            result['error'] = f"Unable to run {cmd[0] if cmd else 'command'}: {e}"

        logger.debug(f"Command finished in {result['duration']:.2f}s (exit code {result['returncode']})")
        return result


def validate_path(path: Union[str, Path], must_exist: bool = True) -> Path:
    """
    Validate and normalize a path.

    Args:
        path: Path to validate
        must_exist: Whether path must exist

    Returns:
        Normalized Path object

    Raises:
        ValueError: If path validation fails
    """
    if isinstance(path, str):
        path = Path(path)

    try:
        path = path.resolve()
    except (OSError, RuntimeError) as e:
        raise ValueError(f"Invalid path: {e}")

    if must_exist and not path.exists():
        raise ValueError(f"Path does not exist: {path}")

    return path
