"""
Adapters package for the Workspaces Service.

Backend collaborators the client layer talks to:

- EarthstarGraphQLClient: httpx client for an earthstar-graphql endpoint
- InMemoryWorkspaceBackend: in-process store with in-memory pubs
- generate_ephemeral_author_identity: local author keypairs

Adapters raise shared errors only; they never touch the query cache.
"""

from .backend import WorkspaceBackend
from .graphql_client import EarthstarGraphQLClient
from .identity import generate_ephemeral_author_identity
from .memory_backend import InMemoryWorkspaceBackend

__all__ = [
    "WorkspaceBackend",
    "EarthstarGraphQLClient",
    "InMemoryWorkspaceBackend",
    "generate_ephemeral_author_identity",
]
