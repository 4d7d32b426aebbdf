"""Client record storage: models, the store contract and the SQLite adapter."""

from .adapter import ClientDatabase
from .interface import ClientStore
from .models import ClientRecord, ActivityRecord

__all__ = [
    'ClientDatabase',
    'ClientStore',
    'ClientRecord',
    'ActivityRecord',
]
