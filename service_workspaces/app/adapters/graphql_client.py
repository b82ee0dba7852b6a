"""
earthstar-graphql client for the Workspaces Service.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from shared.errors import DocumentRejectedError, ExternalServiceError
from shared.logging import get_logger

from ..domain import AuthorIdentity, DocumentInput, SyncResult, Workspace, WriteResult


WORKSPACE_QUERY = """query AppQuery {
  workspaces(sortedBy: LAST_ACTIVITY_DESC) {
    name
    address
    population
    documents {
      ... on ES3Document {
        path
        value
        author {
          shortName
        }
      }
    }
  }
}
"""

SET_MUTATION = """mutation SetMutation(
  $author: AuthorInput!
  $document: DocumentInput!
  $workspace: String!
) {
  set(author: $author, document: $document, workspace: $workspace) {
    __typename
    ... on SetDataSuccessResult {
      document {
        __typename
      }
    }
  }
}
"""

SYNC_MUTATION = """mutation SyncMutation($workspace: String!, $pubUrl: String!) {
  sync(workspace: $workspace, pubUrl: $pubUrl) {
    syncedWorkspace {
      documents {
        __typename
      }
    }
  }
}
"""

SET_SUCCESS_TYPENAME = "SetDataSuccessResult"
SERVICE_NAME = "earthstar_graphql"


class EarthstarGraphQLClient:
    """Client for an earthstar-graphql endpoint."""

    def __init__(self, graphql_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.graphql_url = graphql_url
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("workspaces.graphql_client")

    async def fetch_workspaces(self) -> List[Workspace]:
        """Fetch all workspaces, most recently active first."""
        data = await self._execute("AppQuery", WORKSPACE_QUERY, {})
        raw_workspaces = data.get("workspaces")
        if raw_workspaces is None:
            raise ExternalServiceError(SERVICE_NAME, "Response has no workspaces")
        try:
            # Fragments on other document types come back as empty objects
            return [
                Workspace.model_validate({
                    **item,
                    "documents": [doc for doc in item.get("documents") or [] if doc],
                })
                for item in raw_workspaces
            ]
        except PydanticValidationError as exc:
            raise ExternalServiceError(SERVICE_NAME, "Malformed workspace payload", details={"error": str(exc)})

    async def sync_workspace(self, workspace_address: str, pub_url: str) -> SyncResult:
        """Synchronise one workspace with a pub."""
        data = await self._execute(
            "SyncMutation",
            SYNC_MUTATION,
            {"workspace": workspace_address, "pubUrl": pub_url},
        )
        result = data.get("sync")
        if not result:
            raise ExternalServiceError(
                SERVICE_NAME,
                "Sync returned no result",
                details={"workspace": workspace_address, "pub_url": pub_url},
            )
        return SyncResult.model_validate(result)

    async def write_document(
        self,
        author: AuthorIdentity,
        document: DocumentInput,
        workspace_address: str,
    ) -> WriteResult:
        """Write a document signed by ``author``."""
        data = await self._execute(
            "SetMutation",
            SET_MUTATION,
            {
                "author": author.as_input(),
                "document": document.model_dump(),
                "workspace": workspace_address,
            },
        )
        result = data.get("set") or {}
        typename = result.get("__typename")
        if typename != SET_SUCCESS_TYPENAME:
            self.logger.warning(
                "Document rejected",
                workspace=workspace_address,
                path=document.path,
                result_type=typename,
            )
            raise DocumentRejectedError(
                f"Backend rejected the document ({typename or 'no result'})",
                details={"workspace": workspace_address, "path": document.path, "result_type": typename},
            )
        return WriteResult(success=True, document=result.get("document"))

    async def _execute(self, operation_name: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """POST a GraphQL operation and return its ``data`` member."""
        payload = {"operationName": operation_name, "query": query, "variables": variables}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.graphql_url, json=payload)
        except httpx.HTTPError as exc:
            self.logger.error("GraphQL transport error", operation=operation_name, error=str(exc))
            raise ExternalServiceError(
                SERVICE_NAME,
                f"Request failed: {exc}",
                details={"operation": operation_name},
            )

        if response.status_code != 200:
            self.logger.error(
                "GraphQL request failed",
                operation=operation_name,
                status_code=response.status_code,
                response=response.text,
            )
            raise ExternalServiceError(
                SERVICE_NAME,
                f"Unexpected status {response.status_code}",
                details={"operation": operation_name, "status_code": response.status_code, "body": response.text},
            )

        try:
            body = response.json()
        except ValueError:
            raise ExternalServiceError(SERVICE_NAME, "Response is not JSON", details={"operation": operation_name})

        errors = body.get("errors")
        if errors:
            messages = [error.get("message", "unknown error") for error in errors]
            self.logger.error("GraphQL errors", operation=operation_name, errors=messages)
            raise ExternalServiceError(
                SERVICE_NAME,
                "; ".join(messages),
                details={"operation": operation_name, "errors": errors},
            )

        data = body.get("data")
        if data is None:
            raise ExternalServiceError(SERVICE_NAME, "Response has no data", details={"operation": operation_name})

        self.logger.debug("GraphQL operation completed", operation=operation_name)
        return data
