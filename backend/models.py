"""
CCC Studio API Models

Pydantic models for request/response validation.
Wire names are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with a trailing Z."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Chat / upstream aggregation models

class BlockchainChatRequest(CamelModel):
    """Request to look up a block from a chat command."""
    command: Optional[str] = Field(None, description="Command such as 'block 0' or 'block -5'")


class BlockSnapshot(CamelModel):
    """Block lookup result attached to a chat reply."""
    command: Optional[str] = Field(None, description="Command the snapshot answers")
    block_number: str = Field(..., description="Hex block tag, or the latest-block label")
    block_info: Optional[Dict[str, Any]] = Field(None, description="Raw upstream block object")
    timestamp: str = Field(..., description="Capture time (ISO-8601), not block time")


class PriceQuote(CamelModel):
    """Current price of one currency in the configured fiat unit."""
    currency: str = Field(..., description="Upper-cased currency as requested")
    price: float = Field(..., description="Price in the configured fiat unit")
    timestamp: str = Field(..., description="Capture time (ISO-8601)")


class WhoAmIResponse(CamelModel):
    """Principal behind the caller's bearer token."""
    principal: str


# User models

class UserCredentials(CamelModel):
    """Username/password pair for login and registration."""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class User(UserCredentials):
    """Stored user."""
    id: int


class UserResponse(CamelModel):
    """User as exposed over the API (no password)."""
    id: int
    username: str


# File explorer models

FileType = Literal["file", "directory"]


class FileCreate(CamelModel):
    """Request to create a file or directory entry."""
    name: str = Field(..., description="Display name")
    path: str = Field(..., description="Absolute path inside the user's tree")
    type: FileType = Field(..., description="'file' or 'directory'")
    content: Optional[str] = Field(None, description="File contents; null for directories")
    parent_id: Optional[int] = Field(None, description="Id of the containing directory")
    user_id: int = Field(..., description="Owner")


class FileUpdate(CamelModel):
    """Partial update of a file entry."""
    name: Optional[str] = None
    path: Optional[str] = None
    type: Optional[FileType] = None
    content: Optional[str] = None
    parent_id: Optional[int] = None


class FileRecord(FileCreate):
    """Stored file entry."""
    id: int


class RecentFileRequest(CamelModel):
    """Request to mark a file as recently opened."""
    file_id: Optional[int] = None
    user_id: Optional[int] = None


class RecentFile(CamelModel):
    """A file a user opened, with when."""
    id: int
    file_id: int
    user_id: int
    opened_at: str


# Syntax painting models

class TokenKind(str, Enum):
    KEYWORD = "keyword"
    STRING = "string"
    COMMENT = "comment"
    TAG = "tag"
    ATTRIBUTE = "attribute"
    NUMBER = "number"
    TEXT = "text"


class Token(CamelModel):
    """One painted span of a source line."""
    kind: TokenKind
    text: str


class HighlightResponse(CamelModel):
    """File contents painted line by line."""
    file_id: int
    path: str
    line_count: int
    lines: List[List[Token]]


# Chat transcript models

class MessageOrigin(str, Enum):
    USER = "user"
    SYSTEM = "system"


class ChatMessage(CamelModel):
    """One turn in the chat transcript. Never mutated once appended."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    origin: MessageOrigin
    text: str
    block_data: Optional[BlockSnapshot] = None


# Error response model

class ErrorResponse(CamelModel):
    """Error response."""
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
