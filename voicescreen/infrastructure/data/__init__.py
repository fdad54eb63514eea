"""
Data management infrastructure for interview sessions.
"""

from .mongo import MongoConnection
from .sessions import SessionRecorder

__all__ = [
    'MongoConnection',
    'SessionRecorder',
]
