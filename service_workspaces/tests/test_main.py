"""
Unit tests for the Workspaces service HTTP surface.
"""

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from shared.errors import ValidationError
from service_workspaces.app.adapters import EarthstarGraphQLClient, InMemoryWorkspaceBackend
from service_workspaces.app.caching import FreshnessPolicy
from service_workspaces.app.main import WorkspacesService, build_backend, create_app, parse_policy


WORKSPACE = "+gardening.xxxxxxxxxxxxxxxxxxxx"


class TestWorkspacesService:
    """Test cases for WorkspacesService."""

    @pytest.fixture
    def backend(self):
        return InMemoryWorkspaceBackend([WORKSPACE, "+react.123"])

    @pytest.fixture
    def client(self, backend):
        """Test client sharing one event loop across requests."""
        with TestClient(create_app(backend=backend)) as client:
            yield client

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "workspaces"
        assert response.json()["backend"] == "memory"

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"]["workspaces_query"] == "idle"
        assert data["environment"] == "local"
        assert "commit" not in data
        assert "x-request-id" in response.headers

    def test_list_workspaces(self, client):
        response = client.get("/api/v1/workspaces", params={"wait": "true"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["title"] == "my earthstar workspaces"
        assert {ws["address"] for ws in data["workspaces"]} == {WORKSPACE, "+react.123"}

    def test_list_workspaces_text(self, client):
        response = client.get("/api/v1/workspaces/text", params={"wait": "true"})

        assert response.status_code == 200
        assert response.text.startswith("my earthstar workspaces")
        assert "gardening (+gardening.xxxxxxxxxxxxxxxxxxxx) population 0 [Sync]" in response.text

    def test_post_document_and_see_it_after_refetch(self, client):
        client.get("/api/v1/workspaces", params={"wait": "true"})

        draft = client.put(f"/api/v1/workspaces/{WORKSPACE}/draft", json={"path": "/hello", "value": "world"})
        assert draft.status_code == 200
        assert draft.json()["path"] == "/hello"

        posted = client.post(f"/api/v1/workspaces/{WORKSPACE}/documents")
        assert posted.status_code == 200
        assert posted.json()["status"] == "success"
        assert posted.json()["author"] == "test"

        data = client.get("/api/v1/workspaces", params={"wait": "true"}).json()
        gardening = next(ws for ws in data["workspaces"] if ws["address"] == WORKSPACE)
        assert gardening["documents"][0]["text"] == "Posted by test to /hello: world"
        assert gardening["population"] == 1
        assert gardening["poster"]["path"] == ""
        assert gardening["poster"]["value"] == ""

    def test_rejected_document_keeps_draft(self, client):
        client.get("/api/v1/workspaces", params={"wait": "true"})

        response = client.post(
            f"/api/v1/workspaces/{WORKSPACE}/documents",
            json={"path": "no-leading-slash", "value": "world"},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "DOCUMENT_REJECTED"
        data = client.get("/api/v1/workspaces").json()
        gardening = next(ws for ws in data["workspaces"] if ws["address"] == WORKSPACE)
        assert gardening["poster"]["path"] == "no-leading-slash"
        assert gardening["poster"]["status"] == "error"

    def test_sync_workspace(self, client):
        client.get("/api/v1/workspaces", params={"wait": "true"})

        response = client.post(
            f"/api/v1/workspaces/{WORKSPACE}/sync",
            json={"pub_url": "https://pub.example.org"},
        )

        assert response.status_code == 200
        assert response.json() == {"workspace": WORKSPACE, "status": "success", "synced_documents": 0}

    def test_unknown_workspace_returns_404(self, client):
        client.get("/api/v1/workspaces", params={"wait": "true"})

        response = client.post("/api/v1/workspaces/+nowhere.123/sync")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_refetch(self, client, backend):
        client.get("/api/v1/workspaces", params={"wait": "true"})
        backend.add_workspace("+demo.123")

        response = client.post("/api/v1/workspaces/refetch", params={"wait": "true"})

        assert response.status_code == 200
        assert "+demo.123" in {ws["address"] for ws in response.json()["workspaces"]}

    def test_metrics_endpoint(self, client):
        client.get("/api/v1/workspaces", params={"wait": "true"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "query_fetches_total" in response.text


class TestServiceWiring:
    """Test cases for backend and policy selection."""

    def test_build_memory_backend(self):
        backend = build_backend(get_config("workspaces", 8020, backend="memory"))

        assert isinstance(backend, InMemoryWorkspaceBackend)

    def test_build_graphql_backend(self):
        config = get_config("workspaces", 8020, backend="graphql", graphql_url="http://earthstar:4000/graphql")

        backend = build_backend(config)

        assert isinstance(backend, EarthstarGraphQLClient)
        assert backend.graphql_url == "http://earthstar:4000/graphql"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            build_backend(get_config("workspaces", 8020, backend="carrier-pigeon"))

    def test_parse_policy(self):
        assert parse_policy("trust_cache") == FreshnessPolicy.TRUST_CACHE
        with pytest.raises(ValidationError):
            parse_policy("sometimes")

    def test_service_uses_configured_policy(self):
        config = get_config("workspaces", 8020, workspaces_query_policy="trust_cache")

        service = WorkspacesService(config=config)

        assert service.view.policy == FreshnessPolicy.TRUST_CACHE


class GatedWriteBackend(InMemoryWorkspaceBackend):
    """Memory backend whose writes wait until released."""

    def __init__(self, addresses):
        super().__init__(addresses)
        self.write_started = asyncio.Event()
        self.release_writes = asyncio.Event()

    async def write_document(self, author, document, workspace_address):
        self.write_started.set()
        await self.release_writes.wait()
        return await super().write_document(author, document, workspace_address)


class TestDraftWhilePosting:
    """Draft edits are refused while a post for the same workspace is pending."""

    @pytest.mark.asyncio
    async def test_draft_is_locked_during_pending_post(self):
        backend = GatedWriteBackend([WORKSPACE])
        transport = httpx.ASGITransport(app=create_app(backend=backend))

        async with httpx.AsyncClient(transport=transport, base_url="http://workspaces") as client:
            await client.get("/api/v1/workspaces", params={"wait": "true"})
            await client.put(f"/api/v1/workspaces/{WORKSPACE}/draft", json={"path": "/a", "value": "first"})

            posting = asyncio.create_task(client.post(f"/api/v1/workspaces/{WORKSPACE}/documents"))
            await backend.write_started.wait()

            edit = await client.put(f"/api/v1/workspaces/{WORKSPACE}/draft", json={"path": "/b", "value": "second"})
            second_post = await client.post(
                f"/api/v1/workspaces/{WORKSPACE}/documents",
                json={"path": "/c", "value": "third"},
            )
            pending_view = (await client.get("/api/v1/workspaces")).json()

            backend.release_writes.set()
            posted = await posting
            await client.get("/api/v1/workspaces", params={"wait": "true"})

        assert edit.status_code == 409
        assert edit.json()["code"] == "CONCURRENT_MUTATION"
        assert second_post.status_code == 409
        poster_view = pending_view["workspaces"][0]["poster"]
        assert (poster_view["path"], poster_view["value"]) == ("/a", "first")
        assert poster_view["disabled"] is True
        assert posted.status_code == 200
        workspaces = await backend.fetch_workspaces()
        assert [doc.path for doc in workspaces[0].documents] == ["/a"]
