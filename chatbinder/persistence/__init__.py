"""
Persistence — JSON key-value file and the binding store built on it.
"""

from .bindings import BindingStore
from .kv_file import KeyValueFile, StoreError, StoreLoadError, StoreWriteError

__all__ = [
    "BindingStore",
    "KeyValueFile",
    "StoreError",
    "StoreLoadError",
    "StoreWriteError",
]
