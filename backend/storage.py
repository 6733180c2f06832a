"""
Storage

Repository for users, explorer files and recently opened files.
MemStorage keeps everything in dicts keyed by auto-incrementing ids;
nothing survives a restart.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .errors import NotFoundError
from .models import (
    FileCreate,
    FileRecord,
    FileUpdate,
    RecentFile,
    User,
    UserCredentials,
    utc_timestamp,
)

logger = logging.getLogger(__name__)


class Storage(ABC):
    """CRUD operations the API needs from a backing store."""

    # User operations

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, credentials: UserCredentials) -> User: ...

    # File operations

    @abstractmethod
    def get_file(self, file_id: int) -> Optional[FileRecord]: ...

    @abstractmethod
    def get_files_by_user(self, user_id: int) -> List[FileRecord]: ...

    @abstractmethod
    def create_file(self, file: FileCreate) -> FileRecord: ...

    @abstractmethod
    def update_file(self, file_id: int, update: FileUpdate) -> FileRecord: ...

    @abstractmethod
    def delete_file(self, file_id: int) -> None: ...

    # Recent file operations

    @abstractmethod
    def get_recent_files_by_user(self, user_id: int) -> List[RecentFile]: ...

    @abstractmethod
    def add_recent_file(
        self, file_id: int, user_id: int, opened_at: Optional[str] = None
    ) -> RecentFile: ...


class MemStorage(Storage):
    """In-memory Storage."""

    def __init__(self):
        self._users: Dict[int, User] = {}
        self._files: Dict[int, FileRecord] = {}
        self._recent_files: Dict[int, RecentFile] = {}
        self._next_user_id = 1
        self._next_file_id = 1
        self._next_recent_file_id = 1

    def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.username == username), None)

    def create_user(self, credentials: UserCredentials) -> User:
        user = User(id=self._next_user_id, **credentials.model_dump())
        self._next_user_id += 1
        self._users[user.id] = user
        logger.info(f"Created user {user.id} ({user.username})")
        return user

    def get_file(self, file_id: int) -> Optional[FileRecord]:
        return self._files.get(file_id)

    def get_files_by_user(self, user_id: int) -> List[FileRecord]:
        return [f for f in self._files.values() if f.user_id == user_id]

    def create_file(self, file: FileCreate) -> FileRecord:
        record = FileRecord(id=self._next_file_id, **file.model_dump())
        self._next_file_id += 1
        self._files[record.id] = record
        logger.info(f"Created {record.type} {record.path} (id={record.id})")
        return record

    def update_file(self, file_id: int, update: FileUpdate) -> FileRecord:
        """
        Merge the fields set on update into the stored record.

        Raises:
            NotFoundError: If no file has this id
        """
        existing = self._files.get(file_id)
        if existing is None:
            raise NotFoundError("File not found")

        updated = existing.model_copy(update=update.model_dump(exclude_unset=True))
        self._files[file_id] = updated
        return updated

    def delete_file(self, file_id: int) -> None:
        self._files.pop(file_id, None)

    def get_recent_files_by_user(self, user_id: int) -> List[RecentFile]:
        # Newest insertion first, so equal timestamps keep most-recent-touch order
        entries = [rf for rf in reversed(self._recent_files.values()) if rf.user_id == user_id]
        return sorted(entries, key=lambda rf: rf.opened_at, reverse=True)

    def add_recent_file(
        self, file_id: int, user_id: int, opened_at: Optional[str] = None
    ) -> RecentFile:
        """Record that a user opened a file; reopening refreshes the timestamp."""
        opened_at = opened_at or utc_timestamp()

        for rf_id, rf in self._recent_files.items():
            if rf.file_id == file_id and rf.user_id == user_id:
                refreshed = rf.model_copy(update={"opened_at": opened_at})
                del self._recent_files[rf_id]
                self._recent_files[rf_id] = refreshed
                return refreshed

        recent = RecentFile(
            id=self._next_recent_file_id,
            file_id=file_id,
            user_id=user_id,
            opened_at=opened_at,
        )
        self._next_recent_file_id += 1
        self._recent_files[recent.id] = recent
        return recent


def seed_demo_data(storage: Storage) -> None:
    """Create the demo user and a small sample tree."""
    user = storage.create_user(UserCredentials(username="demo", password="password"))
    src = storage.create_file(
        FileCreate(name="src", path="/src", type="directory", user_id=user.id)
    )
    components = storage.create_file(
        FileCreate(
            name="components",
            path="/src/components",
            type="directory",
            parent_id=src.id,
            user_id=user.id,
        )
    )
    storage.create_file(
        FileCreate(
            name="App.jsx",
            path="/src/components/App.jsx",
            type="file",
            content="// Sample React component",
            parent_id=components.id,
            user_id=user.id,
        )
    )
