"""Scratch and output storage."""

from rollscan.storage.output import export_csv, write_aggregate
from rollscan.storage.scratch import ScratchStore

__all__ = [
    "ScratchStore",
    "export_csv",
    "write_aggregate",
]
