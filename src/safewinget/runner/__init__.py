"""
Process runners.
"""

from safewinget.runner._base import ProcessRunner
from safewinget.runner.local import SubprocessRunner

__all__ = [
    "ProcessRunner",
    "SubprocessRunner",
]
