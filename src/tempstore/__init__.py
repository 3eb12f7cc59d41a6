"""
tempstore - transient, capability-gated object store.

Short-lived binary files are kept under unguessable ids; holding an id is
the only credential needed to read, type-query or delete that one object.
Entries older than a fixed time-to-live are purged by a sweeper.
"""

__version__ = "0.1.0"
