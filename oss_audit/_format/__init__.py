"""
Output format interfaces and implementations for `oss-audit`.
"""

from .columns import ColumnsFormat
from .interface import VulnerabilityFormat
from .json import JsonFormat

__all__ = [
    "ColumnsFormat",
    "VulnerabilityFormat",
    "JsonFormat",
]
