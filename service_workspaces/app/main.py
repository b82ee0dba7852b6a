"""
Workspaces service: serves the workspace list and its sync/post controls.
"""

from typing import Optional

from fastapi import Body, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import ValidationError
from shared.logging import set_workspace_context

from .adapters import EarthstarGraphQLClient, InMemoryWorkspaceBackend, WorkspaceBackend
from .caching import FreshnessPolicy, NamedQueryCache
from .views import WorkspaceListView


class DraftUpdate(BaseModel):
    path: Optional[str] = None
    value: Optional[str] = None


class SyncCommand(BaseModel):
    pub_url: Optional[str] = None


def build_backend(config: ServiceConfig) -> WorkspaceBackend:
    """Create the backend collaborator selected by configuration."""
    if config.backend == "memory":
        return InMemoryWorkspaceBackend(config.memory_workspaces)
    if config.backend == "graphql":
        return EarthstarGraphQLClient(config.graphql_url, timeout=config.request_timeout)
    raise ValidationError("Unknown backend", details={"backend": config.backend})


def parse_policy(value: str) -> FreshnessPolicy:
    try:
        return FreshnessPolicy(value)
    except ValueError:
        raise ValidationError("Unknown query freshness policy", details={"policy": value})


class WorkspacesService(BaseService):
    """Workspaces service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, backend: Optional[WorkspaceBackend] = None):
        super().__init__("workspaces", 8020, config=config)
        self.backend = backend or build_backend(self.config)
        self.cache = NamedQueryCache(metrics=self.metrics)
        self.view = WorkspaceListView(
            self.cache,
            self.backend,
            pub_url=self.config.pub_url,
            seed_label=self.config.author_seed_label,
            policy=parse_policy(self.config.workspaces_query_policy),
            metrics=self.metrics,
        )
        self._setup_workspace_routes()

    async def _check_dependencies(self):
        snapshot = self.cache.get("workspaces")
        return {
            "backend": self.config.backend,
            "workspaces_query": snapshot.status.value if snapshot else "idle",
        }

    def _setup_workspace_routes(self):
        """Set up workspace routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": self.service_name,
                "message": "Workspace access layer - Workspaces",
                "backend": self.config.backend,
            }

        @self.app.get("/api/v1/workspaces")
        async def list_workspaces(wait: bool = Query(False, description="Wait for an in-flight fetch")):
            """Render the workspace list view."""
            if wait:
                await self.view.ready()
            return self.view.render()

        @self.app.get("/api/v1/workspaces/text", response_class=PlainTextResponse)
        async def list_workspaces_text(wait: bool = Query(False)):
            if wait:
                await self.view.ready()
            return self.view.render_text()

        @self.app.post("/api/v1/workspaces/refetch")
        async def refetch_workspaces(wait: bool = Query(False)):
            """Retry the workspace query on user request."""
            self.view.refetch()
            if wait:
                await self.view.ready()
            return self.view.render()

        @self.app.post("/api/v1/workspaces/{address}/sync")
        async def sync_workspace(address: str, command: Optional[SyncCommand] = Body(None)):
            set_workspace_context(address)
            row = self.view.row(address)
            result = await row.sync.sync(command.pub_url if command else None)
            return {
                "workspace": address,
                "status": row.sync.status.value,
                "synced_documents": len(result.synced_workspace.documents),
            }

        @self.app.put("/api/v1/workspaces/{address}/draft")
        async def update_draft(address: str, update: DraftUpdate):
            set_workspace_context(address)
            draft = self.view.row(address).poster.update_draft(update.path, update.value)
            return {"workspace": address, "path": draft.path, "value": draft.value}

        @self.app.post("/api/v1/workspaces/{address}/documents")
        async def post_document(address: str, update: Optional[DraftUpdate] = Body(None)):
            set_workspace_context(address)
            poster = self.view.row(address).poster
            if update is not None:
                poster.update_draft(update.path, update.value)
            result = await poster.post()
            return {
                "workspace": address,
                "status": poster.status.value,
                "success": result.success,
                "author": poster.author.short_name,
            }


def create_app(config: Optional[ServiceConfig] = None, backend: Optional[WorkspaceBackend] = None):
    """Create FastAPI application."""
    service = WorkspacesService(config=config, backend=backend)
    return service.app


if __name__ == "__main__":
    service = WorkspacesService()
    service.run()
