"""
Mutation controllers for the Workspaces Service.

MutationController is the generic pending/success/error state machine;
SyncOrchestrator and DocumentPoster bind it to the two backend writes
and to what must happen after them.
"""

from .controller import MutationController, MutationState, MutationStatus
from .document_poster import DocumentDraft, DocumentPoster, PostRequest
from .sync_orchestrator import WORKSPACES_QUERY, SyncOrchestrator, SyncRequest

__all__ = [
    "MutationController",
    "MutationState",
    "MutationStatus",
    "DocumentDraft",
    "DocumentPoster",
    "PostRequest",
    "SyncOrchestrator",
    "SyncRequest",
    "WORKSPACES_QUERY",
]
