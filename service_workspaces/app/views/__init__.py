"""
Presentation helpers for the Workspaces Service.
"""

from .workspace_list import (
    LOADING_LABEL,
    POSTER_HEADING,
    SYNC_LABEL,
    SYNCING_LABEL,
    TITLE,
    WorkspaceListView,
    WorkspaceRow,
    describe_document,
)

__all__ = [
    "LOADING_LABEL",
    "POSTER_HEADING",
    "SYNC_LABEL",
    "SYNCING_LABEL",
    "TITLE",
    "WorkspaceListView",
    "WorkspaceRow",
    "describe_document",
]
