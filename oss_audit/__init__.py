"""
The `oss_audit` APIs.
"""

from oss_audit._version import __version__

__all__ = ["__version__"]
