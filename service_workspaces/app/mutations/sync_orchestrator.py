"""
Workspace synchronisation controller.
"""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from shared.config import DEFAULT_PUB_URL

from ..adapters.backend import WorkspaceBackend
from ..caching.query_cache import NamedQueryCache
from ..domain import SyncResult
from .controller import MutationController

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


WORKSPACES_QUERY = "workspaces"


@dataclass(frozen=True)
class SyncRequest:
    workspace_address: str
    remote_endpoint_url: str


class SyncOrchestrator(MutationController[SyncRequest, SyncResult]):
    """Synchronises one workspace with a pub, then refetches the workspace list.

    The sync result is never merged into cached state; the merged
    documents only become visible through the refetch.
    """

    def __init__(
        self,
        backend: WorkspaceBackend,
        cache: NamedQueryCache,
        workspace_address: str,
        *,
        pub_url: str = DEFAULT_PUB_URL,
        query_name: str = WORKSPACES_QUERY,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.backend = backend
        self.cache = cache
        self.workspace_address = workspace_address
        self.pub_url = pub_url
        self.query_name = query_name
        super().__init__(
            self._sync,
            on_success=self._invalidate_workspaces,
            name="sync_workspace",
            metrics=metrics,
        )

    async def sync(self, pub_url: Optional[str] = None) -> SyncResult:
        """Sync this controller's workspace with ``pub_url`` (default pub otherwise)."""
        return await self.run(SyncRequest(self.workspace_address, pub_url or self.pub_url))

    async def _sync(self, request: SyncRequest) -> SyncResult:
        self.logger.info(
            "Syncing workspace",
            workspace=request.workspace_address,
            pub_url=request.remote_endpoint_url,
        )
        return await self.backend.sync_workspace(request.workspace_address, request.remote_endpoint_url)

    def _invalidate_workspaces(self, result: SyncResult) -> None:
        self.cache.invalidate(self.query_name)
