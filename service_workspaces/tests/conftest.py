"""
Shared fixtures for Workspaces Service tests.
"""

import asyncio
from typing import List, Optional

import pytest

from shared.metrics import MetricsCollector
from shared.test_helpers import TestDataFactory
from service_workspaces.app.caching import NamedQueryCache
from service_workspaces.app.domain import (
    AuthorIdentity,
    DocumentInput,
    SyncedWorkspace,
    SyncResult,
    Workspace,
    WriteResult,
)


class FakeWorkspaceBackend:
    """Backend double that records calls and can be gated or made to fail."""

    def __init__(self, workspaces: List[Workspace]):
        self.workspaces = workspaces
        self.fetch_calls = 0
        self.sync_calls: list = []
        self.write_calls: list = []
        self.fetch_error: Optional[Exception] = None
        self.sync_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.sync_gate: Optional[asyncio.Event] = None
        self.write_gate: Optional[asyncio.Event] = None

    async def fetch_workspaces(self) -> List[Workspace]:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.workspaces)

    async def sync_workspace(self, workspace_address: str, pub_url: str) -> SyncResult:
        self.sync_calls.append((workspace_address, pub_url))
        if self.sync_gate is not None:
            await self.sync_gate.wait()
        if self.sync_error is not None:
            raise self.sync_error
        return SyncResult(synced_workspace=SyncedWorkspace(documents=[{"__typename": "ES3Document"}]))

    async def write_document(self, author: AuthorIdentity, document: DocumentInput,
                             workspace_address: str) -> WriteResult:
        self.write_calls.append((author, document, workspace_address))
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.write_error is not None:
            raise self.write_error
        return WriteResult(success=True, document={"__typename": "ES3Document"})


@pytest.fixture
def workspaces() -> List[Workspace]:
    """Workspace models built from the shared factory."""
    return [Workspace.model_validate(item) for item in TestDataFactory.create_workspaces_payload()]


@pytest.fixture
def fake_backend(workspaces) -> FakeWorkspaceBackend:
    return FakeWorkspaceBackend(workspaces)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector("workspaces")


@pytest.fixture
def cache(metrics) -> NamedQueryCache:
    return NamedQueryCache(metrics=metrics)
