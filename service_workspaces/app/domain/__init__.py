"""
Domain models for the Workspaces Service.

Read-only projections of backend state plus the inputs and results of
the two write operations (sync and document write).
"""

from .models import (
    Author,
    AuthorIdentity,
    Document,
    DocumentInput,
    SyncedWorkspace,
    SyncResult,
    Workspace,
    WriteResult,
)

__all__ = [
    "Author",
    "AuthorIdentity",
    "Document",
    "DocumentInput",
    "SyncedWorkspace",
    "SyncResult",
    "Workspace",
    "WriteResult",
]
