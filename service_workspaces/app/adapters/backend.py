"""
Backend collaborator contract for the Workspaces Service.
"""

from typing import List, Protocol

from ..domain import AuthorIdentity, DocumentInput, SyncResult, Workspace, WriteResult


class WorkspaceBackend(Protocol):
    """Operations the client layer needs from the document store."""

    async def fetch_workspaces(self) -> List[Workspace]:
        """All workspaces, most recently active first."""
        ...

    async def sync_workspace(self, workspace_address: str, pub_url: str) -> SyncResult: ...

    async def write_document(
        self,
        author: AuthorIdentity,
        document: DocumentInput,
        workspace_address: str,
    ) -> WriteResult: ...
