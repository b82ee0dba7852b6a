"""
Unit tests for the earthstar-graphql client.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from shared.errors import DocumentRejectedError, ExternalServiceError
from shared.test_helpers import TestDataFactory, graphql_response
from service_workspaces.app.adapters import EarthstarGraphQLClient, generate_ephemeral_author_identity
from service_workspaces.app.domain import DocumentInput


GRAPHQL_URL = "http://localhost:4000/graphql"


class TestEarthstarGraphQLClient:
    """Test cases for EarthstarGraphQLClient."""

    @pytest.fixture
    def client(self):
        """Create client instance."""
        return EarthstarGraphQLClient(GRAPHQL_URL)

    @pytest.fixture
    def author(self):
        return generate_ephemeral_author_identity("test")

    @pytest.mark.asyncio
    async def test_fetch_workspaces_success(self, client):
        """Workspaces come back in backend order."""
        payload = TestDataFactory.create_workspaces_payload()

        with patch('httpx.AsyncClient') as mock_client:
            post = mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response({"workspaces": payload})
            )

            workspaces = await client.fetch_workspaces()

        assert [ws.address for ws in workspaces] == [item["address"] for item in payload]
        assert workspaces[0].documents[0].author.short_name == "suzy"
        assert workspaces[0].population == 2
        sent = post.call_args.kwargs["json"]
        assert post.call_args.args[0] == GRAPHQL_URL
        assert sent["operationName"] == "AppQuery"
        assert "LAST_ACTIVITY_DESC" in sent["query"]

    @pytest.mark.asyncio
    async def test_fetch_workspaces_skips_unmatched_fragments(self, client):
        payload = [{
            "name": "demo",
            "address": "+demo.123",
            "population": 1,
            "documents": [{}, TestDataFactory.create_document("/a", "b")],
        }]

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response({"workspaces": payload})
            )

            workspaces = await client.fetch_workspaces()

        assert len(workspaces[0].documents) == 1
        assert workspaces[0].documents[0].path == "/a"

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response(None, errors=[{"message": "workspace store offline"}])
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await client.fetch_workspaces()

        assert "workspace store offline" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_http_status_error_raises(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response(None, status_code=500)
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await client.fetch_workspaces()

        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_network_error_raises(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ConnectError("Connection failed")
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await client.fetch_workspaces()

        assert "Connection failed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_malformed_payload_raises(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response({"workspaces": [{"name": "demo"}]})
            )

            with pytest.raises(ExternalServiceError):
                await client.fetch_workspaces()

    @pytest.mark.asyncio
    async def test_write_document_success(self, client, author):
        set_result = {"set": {"__typename": "SetDataSuccessResult", "document": {"__typename": "ES3Document"}}}

        with patch('httpx.AsyncClient') as mock_client:
            post = mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response(set_result)
            )

            result = await client.write_document(author, DocumentInput(path="/hello", value="hi"), "+demo.123")

        assert result.success is True
        variables = post.call_args.kwargs["json"]["variables"]
        assert variables["author"] == {"address": author.address, "secret": author.secret}
        assert variables["document"] == {"path": "/hello", "value": "hi"}
        assert variables["workspace"] == "+demo.123"

    @pytest.mark.asyncio
    async def test_write_document_rejected(self, client, author):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response({"set": {"__typename": "DocumentRejectedError"}})
            )

            with pytest.raises(DocumentRejectedError) as exc_info:
                await client.write_document(author, DocumentInput(path="bad", value="hi"), "+demo.123")

        assert exc_info.value.details["result_type"] == "DocumentRejectedError"

    @pytest.mark.asyncio
    async def test_sync_workspace_success(self, client):
        sync_result = {"sync": {"syncedWorkspace": {"documents": [{"__typename": "ES3Document"}]}}}

        with patch('httpx.AsyncClient') as mock_client:
            post = mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response(sync_result)
            )

            result = await client.sync_workspace("+demo.123", "https://pub.example.org")

        assert len(result.synced_workspace.documents) == 1
        assert post.call_args.kwargs["json"]["variables"] == {
            "workspace": "+demo.123",
            "pubUrl": "https://pub.example.org",
        }

    @pytest.mark.asyncio
    async def test_sync_workspace_without_result_raises(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=graphql_response({"sync": None})
            )

            with pytest.raises(ExternalServiceError):
                await client.sync_workspace("+demo.123", "https://pub.example.org")
