"""
Mock earthstar-graphql server backed by the in-memory workspace backend.
"""

from typing import Any, Dict, Iterable, Optional

from fastapi import Body, FastAPI

from shared.config import DEFAULT_MEMORY_WORKSPACES
from shared.errors import DocumentRejectedError, WorkspaceLayerException
from shared.logging import get_logger
from service_workspaces.app.adapters import InMemoryWorkspaceBackend
from service_workspaces.app.adapters.memory_backend import DOCUMENT_TYPENAME
from service_workspaces.app.domain import AuthorIdentity, DocumentInput


def _short_name(author_address: str) -> str:
    # "@test.bxxxx" -> "test"
    return author_address.lstrip("@").split(".", 1)[0]


class MockEarthstarServer:
    """Mock earthstar-graphql server implementation."""

    def __init__(self, workspace_addresses: Optional[Iterable[str]] = None, port: int = 4000,
                 backend: Optional[InMemoryWorkspaceBackend] = None):
        self.port = port
        self.logger = get_logger("mock.earthstar")
        self.backend = backend or InMemoryWorkspaceBackend(
            workspace_addresses if workspace_addresses is not None else DEFAULT_MEMORY_WORKSPACES
        )
        self.operations: list = []
        self.app = FastAPI(title="Mock earthstar-graphql", version="1.0.0")
        self._setup_routes()

    def _setup_routes(self):
        """Set up mock GraphQL routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": "mock-earthstar",
                "message": "Mock earthstar-graphql server",
                "version": "1.0.0",
                "operations": len(self.operations),
            }

        @self.app.post("/graphql")
        async def graphql(request: Dict[str, Any] = Body(...)):
            operation = request.get("operationName")
            variables = request.get("variables") or {}
            self.operations.append(operation)
            self.logger.debug("GraphQL operation received", operation=operation)

            handler = {
                "AppQuery": self._workspaces,
                "SetMutation": self._set,
                "SyncMutation": self._sync,
            }.get(operation)
            if handler is None:
                return {"data": None, "errors": [{"message": f"Unknown operation '{operation}'"}]}
            return await handler(variables)

    async def _workspaces(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        workspaces = await self.backend.fetch_workspaces()
        return {"data": {"workspaces": [workspace.model_dump(by_alias=True) for workspace in workspaces]}}

    async def _set(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        author = variables.get("author") or {}
        document = variables.get("document") or {}
        identity = AuthorIdentity(
            address=author.get("address", ""),
            secret=author.get("secret", ""),
            short_name=_short_name(author.get("address", "")),
        )
        try:
            await self.backend.write_document(
                identity,
                DocumentInput(path=document.get("path", ""), value=document.get("value", "")),
                variables.get("workspace", ""),
            )
        except DocumentRejectedError as exc:
            self.logger.info("Mock rejected document", reason=exc.message)
            return {"data": {"set": {"__typename": "DocumentRejectedError"}}}
        return {
            "data": {
                "set": {
                    "__typename": "SetDataSuccessResult",
                    "document": {"__typename": DOCUMENT_TYPENAME},
                }
            }
        }

    async def _sync(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = await self.backend.sync_workspace(variables.get("workspace", ""), variables.get("pubUrl", ""))
        except WorkspaceLayerException as exc:
            return {"data": {"sync": None}, "errors": [{"message": exc.message}]}
        return {"data": {"sync": result.model_dump(by_alias=True)}}


def create_app():
    """Create mock earthstar-graphql application."""
    server = MockEarthstarServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=4000)
