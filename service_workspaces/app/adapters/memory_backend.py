"""In-process workspace backend used for local runs, the mock server and tests."""
from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from shared.errors import DocumentRejectedError, ExternalServiceError, ValidationError
from shared.logging import get_logger

from ..domain import (
    Author,
    AuthorIdentity,
    Document,
    DocumentInput,
    SyncedWorkspace,
    SyncResult,
    Workspace,
    WriteResult,
)


WORKSPACE_ADDRESS_PATTERN = re.compile(r"^\+([a-z][a-z0-9]{0,14})\.([a-z0-9]{1,53})$")
DOCUMENT_TYPENAME = "ES3Document"

PubStore = Dict[str, Dict[str, "StoredDocument"]]


@dataclass(frozen=True)
class StoredDocument:
    path: str
    value: str
    author_address: str
    author_short_name: str
    timestamp: int

    def to_model(self) -> Document:
        return Document(path=self.path, value=self.value, author=Author(short_name=self.author_short_name))


@dataclass
class WorkspaceRecord:
    address: str
    name: str
    documents: Dict[str, StoredDocument] = field(default_factory=dict)
    last_activity: int = 0

    @property
    def population(self) -> int:
        return len({doc.author_address for doc in self.documents.values()})


def parse_workspace_address(address: str) -> str:
    """Return the workspace name of ``address`` or raise ValidationError."""
    match = WORKSPACE_ADDRESS_PATTERN.match(address or "")
    if match is None:
        raise ValidationError("Invalid workspace address", details={"workspace": address})
    return match.group(1)


def validate_path(path: str) -> Optional[str]:
    """Return the reason a document path is invalid, or None."""
    if not path.startswith("/"):
        return "path must start with '/'"
    if "//" in path:
        return "path must not contain '//'"
    if any(ch.isspace() for ch in path):
        return "path must not contain whitespace"
    if not path.isprintable():
        return "path must only contain printable characters"
    return None


class InMemoryWorkspaceBackend:
    """Workspace store kept in memory, with in-memory pubs for sync."""

    def __init__(
        self,
        workspace_addresses: Iterable[str],
        *,
        pubs: Optional[Dict[str, PubStore]] = None,
        auto_create_pubs: bool = True,
    ) -> None:
        self.logger = get_logger("workspaces.memory_backend")
        self._workspaces: Dict[str, WorkspaceRecord] = {}
        self._pubs: Dict[str, PubStore] = pubs if pubs is not None else {}
        self._auto_create_pubs = auto_create_pubs
        self._last_timestamp = 0
        for address in workspace_addresses:
            self.add_workspace(address)

    def _now(self) -> int:
        # Microsecond wall clock, strictly increasing across writes
        self._last_timestamp = max(time.time_ns() // 1000, self._last_timestamp + 1)
        return self._last_timestamp

    def _require_workspace(self, address: str) -> WorkspaceRecord:
        workspace = self._workspaces.get(address)
        if workspace is None:
            raise ExternalServiceError("earthstar", "No such workspace", details={"workspace": address})
        return workspace

    def _pub(self, pub_url: str) -> PubStore:
        pub = self._pubs.get(pub_url)
        if pub is None:
            if not self._auto_create_pubs:
                raise ExternalServiceError("earthstar_pub", "Could not reach pub", details={"pub_url": pub_url})
            pub = self._pubs[pub_url] = {}
            self.logger.info("Created in-memory pub", pub_url=pub_url)
        return pub

    @staticmethod
    def _merge(target: Dict[str, StoredDocument], incoming: Iterable[StoredDocument]) -> int:
        changed = 0
        for doc in incoming:
            current = target.get(doc.path)
            if current is None or doc.timestamp > current.timestamp:
                target[doc.path] = doc
                changed += 1
        return changed

    def add_workspace(self, address: str) -> None:
        name = parse_workspace_address(address)
        self._workspaces.setdefault(address, WorkspaceRecord(address=address, name=name))

    async def fetch_workspaces(self) -> List[Workspace]:
        records = sorted(self._workspaces.values(), key=lambda item: item.last_activity, reverse=True)
        return [
            Workspace(
                name=record.name,
                address=record.address,
                population=record.population,
                documents=[record.documents[path].to_model() for path in sorted(record.documents)],
            )
            for record in records
        ]

    async def write_document(
        self,
        author: AuthorIdentity,
        document: DocumentInput,
        workspace_address: str,
    ) -> WriteResult:
        workspace = self._workspaces.get(workspace_address)
        if workspace is None:
            raise DocumentRejectedError("No such workspace", details={"workspace": workspace_address})

        reason = validate_path(document.path)
        if reason:
            raise DocumentRejectedError(reason, details={"path": document.path})

        stored = StoredDocument(
            path=document.path,
            value=document.value,
            author_address=author.address,
            author_short_name=author.short_name,
            timestamp=self._now(),
        )
        workspace.documents[document.path] = stored
        workspace.last_activity = stored.timestamp
        self.logger.info("Document written", workspace=workspace_address, path=document.path, author=author.short_name)
        return WriteResult(success=True, document={"__typename": DOCUMENT_TYPENAME, "path": stored.path})

    async def sync_workspace(self, workspace_address: str, pub_url: str) -> SyncResult:
        workspace = self._require_workspace(workspace_address)
        pub_documents = self._pub(pub_url).setdefault(workspace_address, {})

        pushed = self._merge(pub_documents, list(workspace.documents.values()))
        pulled = self._merge(workspace.documents, list(pub_documents.values()))
        if pulled:
            workspace.last_activity = self._now()

        self.logger.info(
            "Workspace synced",
            workspace=workspace_address,
            pub_url=pub_url,
            pushed=pushed,
            pulled=pulled,
        )
        return SyncResult(
            synced_workspace=SyncedWorkspace(
                documents=[{"__typename": DOCUMENT_TYPENAME} for _ in workspace.documents]
            )
        )

    def pub_documents(self, pub_url: str, workspace_address: str) -> List[StoredDocument]:
        """Documents a pub holds for a workspace (empty when unknown)."""
        return list(self._pubs.get(pub_url, {}).get(workspace_address, {}).values())

    def reset(self) -> None:
        for workspace in self._workspaces.values():
            workspace.documents.clear()
            workspace.last_activity = 0
        self._pubs.clear()
