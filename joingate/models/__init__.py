"""SQLAlchemy models for joingate."""

from .base import Base, UTCDateTime, metadata
from .models import ActiveRequestPointer, JoinRequestRecord

__all__ = [
    "Base",
    "metadata",
    "UTCDateTime",
    "JoinRequestRecord",
    "ActiveRequestPointer",
]
