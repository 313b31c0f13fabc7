"""
Dependency source interfaces and implementations for `oss-audit`.
"""

from .gemfile_lock import GemfileLockSource, GemfileLockSourceError
from .interface import DependencySource, DependencySourceError

__all__ = [
    "DependencySource",
    "DependencySourceError",
    "GemfileLockSource",
    "GemfileLockSourceError",
]
