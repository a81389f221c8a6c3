"""
Chat Binder — Master/slave chat room membership mirroring.
"""

__version__ = "1.0.0"
