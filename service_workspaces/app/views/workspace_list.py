"""
Workspace list view model.

Turns the shared ``workspaces`` query and the per-row controllers into a
render-ready structure. The view owns one row per workspace address; a
row keeps its sync and post controllers (and the poster's ephemeral
identity) for as long as the workspace stays in the list.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.config import DEFAULT_PUB_URL
from shared.errors import NotFoundError
from shared.logging import get_logger

from ..adapters.backend import WorkspaceBackend
from ..caching.query_cache import FreshnessPolicy, NamedQueryCache, QueryResult, QueryStatus, QuerySubscription
from ..domain import Document, Workspace
from ..mutations import WORKSPACES_QUERY, DocumentPoster, MutationController, SyncOrchestrator

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


TITLE = "my earthstar workspaces"
LOADING_LABEL = "Loading..."
SYNC_LABEL = "Sync"
SYNCING_LABEL = "Syncing..."
POSTER_HEADING = "Post something with a temporary identity!"


def describe_document(document: Document) -> str:
    return f"Posted by {document.author.short_name} to {document.path}: {document.value}"


def _error_view(error: Optional[Exception]) -> Optional[Dict[str, Any]]:
    if error is None:
        return None
    return {
        "code": getattr(error, "code", error.__class__.__name__),
        "message": getattr(error, "message", str(error)),
    }


def _controller_view(controller: MutationController) -> Dict[str, Any]:
    return {
        "status": controller.status.value,
        "disabled": controller.is_pending,
        "error": _error_view(controller.last_error),
    }


class WorkspaceRow:
    """Controls attached to one workspace in the list."""

    def __init__(
        self,
        backend: WorkspaceBackend,
        cache: NamedQueryCache,
        workspace_address: str,
        *,
        pub_url: str = DEFAULT_PUB_URL,
        seed_label: str = "test",
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.workspace_address = workspace_address
        self.sync = SyncOrchestrator(backend, cache, workspace_address, pub_url=pub_url, metrics=metrics)
        self.poster = DocumentPoster(backend, cache, workspace_address, seed_label=seed_label, metrics=metrics)

    @property
    def sync_label(self) -> str:
        return SYNCING_LABEL if self.sync.is_pending else SYNC_LABEL

    def render(self, workspace: Workspace) -> Dict[str, Any]:
        return {
            "name": workspace.name,
            "address": workspace.address,
            "population": workspace.population,
            "documents": [
                {
                    "author": document.author.short_name,
                    "path": document.path,
                    "value": document.value,
                    "text": describe_document(document),
                }
                for document in workspace.documents
            ],
            "sync": {"label": self.sync_label, **_controller_view(self.sync)},
            "poster": {
                "heading": POSTER_HEADING,
                "author": self.poster.seed_label,
                "path": self.poster.draft.path,
                "value": self.poster.draft.value,
                **_controller_view(self.poster),
            },
        }

    def close(self) -> None:
        self.poster.close()


class WorkspaceListView:
    """The application's single screen: every workspace with its controls."""

    def __init__(
        self,
        cache: NamedQueryCache,
        backend: WorkspaceBackend,
        *,
        pub_url: str = DEFAULT_PUB_URL,
        seed_label: str = "test",
        policy: FreshnessPolicy = FreshnessPolicy.ALWAYS_REFETCH,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.backend = backend
        self.pub_url = pub_url
        self.seed_label = seed_label
        self.policy = policy
        self.metrics = metrics
        self.logger = get_logger("workspaces.views.workspace_list")
        self.rows: Dict[str, WorkspaceRow] = {}
        self._subscription: Optional[QuerySubscription] = None
        self.renders = 0

    @property
    def mounted(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def mount(self) -> QuerySubscription:
        """Subscribe to the workspace list; a no-op when already mounted."""
        if not self.mounted:
            self._subscription = self.cache.subscribe(
                WORKSPACES_QUERY,
                self.backend.fetch_workspaces,
                self.policy,
                listener=self._on_query_update,
            )
            self._sync_rows(self._subscription.data)
            self.logger.info("Workspace list mounted", status=self._subscription.status.value)
        return self._subscription

    def refetch(self) -> QuerySubscription:
        """Re-subscribe, which fetches again under the view's policy."""
        self.unmount(keep_rows=True)
        return self.mount()

    def unmount(self, keep_rows: bool = False) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if not keep_rows:
            for row in self.rows.values():
                row.close()
            self.rows.clear()
        self.logger.info("Workspace list unmounted", keep_rows=keep_rows)

    async def ready(self) -> QueryResult:
        """Wait for the current fetch (if any) to settle."""
        subscription = self.mount()
        return await subscription.settled()

    def row(self, workspace_address: str) -> WorkspaceRow:
        row = self.rows.get(workspace_address)
        if row is None:
            raise NotFoundError("Unknown workspace", details={"workspace": workspace_address})
        return row

    def render(self) -> Dict[str, Any]:
        subscription = self.mount()
        result = subscription.result()
        self._sync_rows(result.data)

        if result.data is None:
            if result.status == QueryStatus.ERROR:
                return {"status": result.status.value, "error": _error_view(result.error)}
            return {"status": result.status.value, "label": LOADING_LABEL}

        workspaces: List[Workspace] = result.data
        return {
            "status": result.status.value,
            "title": TITLE,
            "error": _error_view(result.error),
            "workspaces": [self.rows[workspace.address].render(workspace) for workspace in workspaces],
        }

    def render_text(self) -> str:
        view = self.render()
        if "workspaces" not in view:
            if view.get("error"):
                return f"Could not load workspaces: {view['error']['message']}"
            return LOADING_LABEL

        lines = [TITLE, ""]
        if view["error"]:
            lines.extend([f"(showing cached data: {view['error']['message']})", ""])
        for workspace in view["workspaces"]:
            lines.append(f"{workspace['name']} ({workspace['address']}) population {workspace['population']}"
                         f" [{workspace['sync']['label']}]")
            lines.extend(f"  {document['text']}" for document in workspace["documents"])
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"

    def _on_query_update(self, result: QueryResult) -> None:
        self.renders += 1
        self._sync_rows(result.data)

    def _sync_rows(self, workspaces: Optional[List[Workspace]]) -> None:
        if workspaces is None:
            return
        addresses = [workspace.address for workspace in workspaces]
        for address in addresses:
            if address not in self.rows:
                self.rows[address] = WorkspaceRow(
                    self.backend,
                    self.cache,
                    address,
                    pub_url=self.pub_url,
                    seed_label=self.seed_label,
                    metrics=self.metrics,
                )
        for address in [address for address in self.rows if address not in addresses]:
            self.rows.pop(address).close()
            self.logger.info("Workspace row torn down", workspace=address)
