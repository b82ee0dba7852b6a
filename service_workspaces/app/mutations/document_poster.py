"""
Document posting controller.
"""

from dataclasses import dataclass
from typing import Callable, Optional, TYPE_CHECKING

from shared.errors import ConcurrentMutationError, ValidationError

from ..adapters.backend import WorkspaceBackend
from ..adapters.identity import generate_ephemeral_author_identity
from ..caching.query_cache import NamedQueryCache
from ..domain import AuthorIdentity, DocumentInput, WriteResult
from .controller import MutationController
from .sync_orchestrator import WORKSPACES_QUERY

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass
class DocumentDraft:
    """Caller-held form fields for the next post."""
    path: str = ""
    value: str = ""

    def clear(self) -> None:
        self.path = ""
        self.value = ""

    @property
    def is_empty(self) -> bool:
        return not self.path and not self.value


@dataclass(frozen=True)
class PostRequest:
    author: AuthorIdentity
    document: DocumentInput
    workspace: str


class DocumentPoster(MutationController[PostRequest, WriteResult]):
    """Posts documents to one workspace under an ephemeral identity.

    The identity is created on first use and shared by every post from
    this instance until ``close`` is called. On success the workspace
    list is invalidated first, then the draft is cleared; on failure the
    draft is left untouched so the user can retry.
    """

    def __init__(
        self,
        backend: WorkspaceBackend,
        cache: NamedQueryCache,
        workspace_address: str,
        *,
        seed_label: str = "test",
        identity_factory: Callable[[str], AuthorIdentity] = generate_ephemeral_author_identity,
        query_name: str = WORKSPACES_QUERY,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.backend = backend
        self.cache = cache
        self.workspace_address = workspace_address
        self.seed_label = seed_label
        self.query_name = query_name
        self.draft = DocumentDraft()
        self._identity_factory = identity_factory
        self._author: Optional[AuthorIdentity] = None
        self._closed = False
        super().__init__(
            self._write,
            on_success=self._after_post,
            name="write_document",
            metrics=metrics,
        )

    @property
    def author(self) -> AuthorIdentity:
        if self._closed:
            raise ValidationError(
                "Poster has been closed",
                details={"workspace": self.workspace_address},
            )
        if self._author is None:
            self._author = self._identity_factory(self.seed_label)
            self.logger.info(
                "Ephemeral author created",
                workspace=self.workspace_address,
                author=self._author.short_name,
            )
        return self._author

    @property
    def closed(self) -> bool:
        return self._closed

    def update_draft(self, path: Optional[str] = None, value: Optional[str] = None) -> DocumentDraft:
        """Edit the draft. Refused while a post is pending."""
        if self.is_pending:
            self.logger.warning("Draft edit rejected while posting", workspace=self.workspace_address)
            raise ConcurrentMutationError(self.name, details={"workspace": self.workspace_address})
        if path is not None:
            self.draft.path = path
        if value is not None:
            self.draft.value = value
        return self.draft

    async def post(self) -> WriteResult:
        """Submit the current draft."""
        request = PostRequest(
            author=self.author,
            document=DocumentInput(path=self.draft.path, value=self.draft.value),
            workspace=self.workspace_address,
        )
        return await self.run(request)

    def close(self) -> None:
        """Discard the identity; the poster cannot post afterwards."""
        self._author = None
        self._closed = True
        self.logger.debug("Poster closed", workspace=self.workspace_address)

    async def _write(self, request: PostRequest) -> WriteResult:
        return await self.backend.write_document(request.author, request.document, request.workspace)

    def _after_post(self, result: WriteResult) -> None:
        self.cache.invalidate(self.query_name)
        self.draft.clear()
