"""
Metadata store abstraction: Firestore, SQLAlchemy, and an in-memory test implementation.

Records are filed per user: ``users/{user_id}`` holds the profile and
``users/{user_id}/creations/{creation_id}`` holds one creation.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from sqlalchemy import Column, Float, String, Text, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from creative_canvas.errors import CreationNotFoundError

USERS_COLLECTION = "users"
CREATIONS_COLLECTION = "creations"


class DbClient(Protocol):
    """Interface for metadata access."""

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def create_user(self, user_id: str, email: str) -> None:
        ...

    def save_creation(self, record: "CreationRecord") -> None:
        ...

    def get_creation(
        self, user_id: str, creation_id: str
    ) -> Optional["CreationRecord"]:
        ...

    def list_creations(self, user_id: str) -> list["CreationRecord"]:
        ...

    def update_creation_video(
        self, user_id: str, creation_id: str, video_url: str, video_prompt: str
    ) -> None:
        ...

    def delete_creation(self, user_id: str, creation_id: str) -> None:
        ...


def _epoch_now() -> float:
    return time.time()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserRecord:
    user_id: str
    email: str
    created_at: Optional[datetime] = None


@dataclass
class CreationRecord:
    creation_id: str
    user_id: str
    drawing_url: str
    image_url: str
    image_prompt: str
    cn_description: Optional[str] = None
    cn_style: Optional[str] = None
    video_url: Optional[str] = None
    video_prompt: Optional[str] = None
    timestamp: Optional[datetime] = None

    def as_document(self) -> dict:
        """Fields stored in the document; ids live in the path."""
        return {
            "drawing_url": self.drawing_url,
            "image_url": self.image_url,
            "image_prompt": self.image_prompt,
            "cn_description": self.cn_description,
            "cn_style": self.cn_style,
            "video_url": self.video_url,
            "video_prompt": self.video_prompt,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_document(
        cls, user_id: str, creation_id: str, data: dict
    ) -> "CreationRecord":
        return cls(
            creation_id=creation_id,
            user_id=user_id,
            drawing_url=data.get("drawing_url"),
            image_url=data.get("image_url"),
            image_prompt=data.get("image_prompt"),
            cn_description=data.get("cn_description"),
            cn_style=data.get("cn_style"),
            video_url=data.get("video_url"),
            video_prompt=data.get("video_prompt"),
            timestamp=data.get("timestamp"),
        )


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.creations: Dict[tuple[str, str], CreationRecord] = {}

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def create_user(self, user_id: str, email: str) -> None:
        self.users[user_id] = UserRecord(
            user_id=user_id, email=email, created_at=_utcnow()
        )

    def save_creation(self, record: CreationRecord) -> None:
        record.timestamp = _utcnow()
        self.creations[(record.user_id, record.creation_id)] = record

    def get_creation(
        self, user_id: str, creation_id: str
    ) -> Optional[CreationRecord]:
        return self.creations.get((user_id, creation_id))

    def list_creations(self, user_id: str) -> list[CreationRecord]:
        owned = [
            record
            for (owner, _), record in self.creations.items()
            if owner == user_id
        ]
        return sorted(owned, key=lambda record: record.timestamp, reverse=True)

    def update_creation_video(
        self, user_id: str, creation_id: str, video_url: str, video_prompt: str
    ) -> None:
        record = self.creations.get((user_id, creation_id))
        if not record:
            raise CreationNotFoundError(f"Creation {creation_id} not found")
        record.video_url = video_url
        record.video_prompt = video_prompt

    def delete_creation(self, user_id: str, creation_id: str) -> None:
        self.creations.pop((user_id, creation_id), None)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.creations.clear()


class FirestoreDbClient:
    """Firestore-backed implementation using server-assigned timestamps."""

    def __init__(self, project: str, database: str):
        self.client = firestore.Client(project=project, database=database)

    def _user_ref(self, user_id: str):
        return self.client.collection(USERS_COLLECTION).document(user_id)

    def _creation_ref(self, user_id: str, creation_id: str):
        return (
            self._user_ref(user_id)
            .collection(CREATIONS_COLLECTION)
            .document(creation_id)
        )

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        snapshot = self._user_ref(user_id).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        return UserRecord(
            user_id=user_id,
            email=data.get("userEmail"),
            created_at=data.get("created_at"),
        )

    def create_user(self, user_id: str, email: str) -> None:
        self._user_ref(user_id).set(
            {"userEmail": email, "created_at": SERVER_TIMESTAMP}
        )

    def save_creation(self, record: CreationRecord) -> None:
        document = record.as_document()
        document["timestamp"] = SERVER_TIMESTAMP
        self._creation_ref(record.user_id, record.creation_id).set(document)

    def get_creation(
        self, user_id: str, creation_id: str
    ) -> Optional[CreationRecord]:
        snapshot = self._creation_ref(user_id, creation_id).get()
        if not snapshot.exists:
            return None
        return CreationRecord.from_document(
            user_id, creation_id, snapshot.to_dict() or {}
        )

    def list_creations(self, user_id: str) -> list[CreationRecord]:
        query = (
            self._user_ref(user_id)
            .collection(CREATIONS_COLLECTION)
            .order_by("timestamp", direction=firestore.Query.DESCENDING)
        )
        return [
            CreationRecord.from_document(user_id, snapshot.id, snapshot.to_dict() or {})
            for snapshot in query.stream()
        ]

    def update_creation_video(
        self, user_id: str, creation_id: str, video_url: str, video_prompt: str
    ) -> None:
        try:
            self._creation_ref(user_id, creation_id).update(
                {"video_url": video_url, "video_prompt": video_prompt}
            )
        except gcp_exceptions.NotFound as e:
            raise CreationNotFoundError(
                f"Creation {creation_id} not found", details=str(e)
            ) from e

    def delete_creation(self, user_id: str, creation_id: str) -> None:
        self._creation_ref(user_id, creation_id).delete()


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_creation_record(self, row: "CreationRow") -> CreationRecord:
        return CreationRecord(
            creation_id=row.creation_id,
            user_id=row.user_id,
            drawing_url=row.drawing_url,
            image_url=row.image_url,
            image_prompt=row.image_prompt,
            cn_description=row.cn_description,
            cn_style=row.cn_style,
            video_url=row.video_url,
            video_prompt=row.video_prompt,
            timestamp=datetime.fromtimestamp(row.timestamp, tz=timezone.utc),
        )

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            return UserRecord(
                user_id=row.user_id,
                email=row.email,
                created_at=datetime.fromtimestamp(row.created_at, tz=timezone.utc),
            )

    def create_user(self, user_id: str, email: str) -> None:
        with self.Session() as session:
            existing = session.get(UserRow, user_id)
            if existing:
                existing.email = email
            else:
                session.add(
                    UserRow(user_id=user_id, email=email, created_at=_epoch_now())
                )
            session.commit()

    def save_creation(self, record: CreationRecord) -> None:
        now = _epoch_now()
        with self.Session() as session:
            # Same id under the same user overwrites, matching document stores.
            session.merge(
                CreationRow(
                    user_id=record.user_id,
                    creation_id=record.creation_id,
                    drawing_url=record.drawing_url,
                    image_url=record.image_url,
                    image_prompt=record.image_prompt,
                    cn_description=record.cn_description,
                    cn_style=record.cn_style,
                    video_url=record.video_url,
                    video_prompt=record.video_prompt,
                    timestamp=now,
                )
            )
            session.commit()
        record.timestamp = datetime.fromtimestamp(now, tz=timezone.utc)

    def get_creation(
        self, user_id: str, creation_id: str
    ) -> Optional[CreationRecord]:
        with self.Session() as session:
            row = session.get(CreationRow, (user_id, creation_id))
            if not row:
                return None
            return self._to_creation_record(row)

    def list_creations(self, user_id: str) -> list[CreationRecord]:
        with self.Session() as session:
            stmt = (
                select(CreationRow)
                .where(CreationRow.user_id == user_id)
                .order_by(CreationRow.timestamp.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_creation_record(row) for row in rows]

    def update_creation_video(
        self, user_id: str, creation_id: str, video_url: str, video_prompt: str
    ) -> None:
        with self.Session() as session:
            row = session.get(CreationRow, (user_id, creation_id))
            if not row:
                raise CreationNotFoundError(f"Creation {creation_id} not found")
            row.video_url = video_url
            row.video_prompt = video_prompt
            session.commit()

    def delete_creation(self, user_id: str, creation_id: str) -> None:
        with self.Session() as session:
            session.execute(
                delete(CreationRow).where(
                    CreationRow.user_id == user_id,
                    CreationRow.creation_id == creation_id,
                )
            )
            session.commit()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True)
    email = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class CreationRow(Base):
    __tablename__ = "creations"

    user_id = Column(String, primary_key=True)
    creation_id = Column(String, primary_key=True)
    drawing_url = Column(String, nullable=False)
    image_url = Column(String, nullable=False)
    image_prompt = Column(Text, nullable=False)
    cn_description = Column(Text, nullable=True)
    cn_style = Column(String, nullable=True)
    video_url = Column(String, nullable=True)
    video_prompt = Column(Text, nullable=True)
    timestamp = Column(Float, nullable=False, index=True)
