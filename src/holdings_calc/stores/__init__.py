"""
Frame-backed graph and attribute stores.

Modules:
    frames: In-memory stores indexed from polars frames
    loader: Parquet and CSV directory loaders
"""

from .frames import FrameAttributeStore, FrameGraphStore
from .loader import CSVStoreLoader, ParquetStoreLoader, StoreBundle

__all__ = [
    "CSVStoreLoader",
    "FrameAttributeStore",
    "FrameGraphStore",
    "ParquetStoreLoader",
    "StoreBundle",
]
