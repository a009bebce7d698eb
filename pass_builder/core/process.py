"""
Subprocess seam.

Every external command goes through a ``run`` callable with the
signature of ``subprocess.run`` so tests can substitute a recorder.
"""
import subprocess
from typing import Callable, List, Optional

RunFn = Callable[..., subprocess.CompletedProcess]


def run_captured(
    cmd: List[str],
    run: RunFn = subprocess.run,
    timeout: Optional[int] = None,
) -> subprocess.CompletedProcess:
    """Run *cmd* to completion capturing text stdout/stderr.

    OSError (missing executable, permission denied) and
    subprocess.TimeoutExpired propagate to the caller.
    """
    return run(cmd, capture_output=True, text=True, timeout=timeout)
