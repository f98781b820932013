"""State stores and the join request repository."""

from .repository import JoinRequestRepository
from .state import MemoryStateStore, RequestState, StateStore, StoreError, create_state_store

__all__ = [
    "JoinRequestRepository",
    "StateStore",
    "RequestState",
    "StoreError",
    "MemoryStateStore",
    "create_state_store",
]
