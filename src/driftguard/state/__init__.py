"""Record models, store documents and the state loader."""

from .models import (
    DesiredSet,
    DesiredSetSource,
    IdentityKey,
    Record,
    RecordSet,
    WILDCARD,
    fold,
    key_sort_value,
)
from .store import StoreDocument, StoreFormat
from .loader import StateLoader, StoreSnapshot

__all__ = [
    "DesiredSet",
    "DesiredSetSource",
    "IdentityKey",
    "Record",
    "RecordSet",
    "WILDCARD",
    "fold",
    "key_sort_value",
    "StoreDocument",
    "StoreFormat",
    "StateLoader",
    "StoreSnapshot",
]
