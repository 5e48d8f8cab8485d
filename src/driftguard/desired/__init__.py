"""Desired-state set resolution."""

from .builtin import BUILTIN_SETS, builtin_set_names
from .provider import DesiredSetDocument, DesiredSetProvider

__all__ = [
    "BUILTIN_SETS",
    "builtin_set_names",
    "DesiredSetDocument",
    "DesiredSetProvider",
]
