"""
Workspace data models.

These mirror the shapes returned by the earthstar-graphql backend. The
client never edits them in place; new state always arrives through a
re-fetch of the workspace list.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Author(BaseModel):
    """Author of a document as exposed by the backend."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    short_name: str = Field(..., alias="shortName")


class Document(BaseModel):
    """A path-addressed value with its author."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    path: str
    value: str
    author: Author


class Workspace(BaseModel):
    """Read-only projection of a workspace."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    address: str
    population: int = Field(..., ge=0)
    documents: List[Document] = Field(default_factory=list)


class AuthorIdentity(BaseModel):
    """Ephemeral author keypair used to sign posted documents."""
    model_config = ConfigDict(frozen=True)

    address: str
    secret: str = Field(..., repr=False)
    short_name: str

    def as_input(self) -> Dict[str, str]:
        """AuthorInput variables for the set mutation."""
        return {"address": self.address, "secret": self.secret}


class DocumentInput(BaseModel):
    """Path and value of a document to write."""
    model_config = ConfigDict(frozen=True)

    path: str
    value: str


class SyncedWorkspace(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    documents: List[Dict[str, Any]] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Outcome of synchronising a workspace with a pub."""
    model_config = ConfigDict(populate_by_name=True)

    synced_workspace: SyncedWorkspace = Field(default_factory=SyncedWorkspace, alias="syncedWorkspace")


class WriteResult(BaseModel):
    """Outcome of a document write."""

    success: bool
    document: Optional[Dict[str, Any]] = None
