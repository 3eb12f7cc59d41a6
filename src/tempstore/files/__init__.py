"""File store package: id-keyed backing blobs on the local filesystem."""

from tempstore.files.store import FileStore

__all__ = ["FileStore"]
