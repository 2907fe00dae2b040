"""Services: orchestration of load, sort and write-back."""

from .sorter_service import PlaylistSorter, build_auth, build_bpm_client
from .writeback_service import RangeMove, WriteBackResult, plan_moves, save_order

__all__ = [
    "PlaylistSorter",
    "build_auth",
    "build_bpm_client",
    "RangeMove",
    "WriteBackResult",
    "plan_moves",
    "save_order",
]
