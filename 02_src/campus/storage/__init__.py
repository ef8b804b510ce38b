"""Storage module."""

from .files import IFileStore, LocalFileStore, sanitize_file_name
from .storage import IStorage, Storage

__all__ = ["IStorage", "Storage", "IFileStore", "LocalFileStore", "sanitize_file_name"]
