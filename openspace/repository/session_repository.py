"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import replace
from pathlib import Path
from threading import Lock, RLock
from typing import Callable, Optional, TypeVar

from openspace.domain.constraints import validate_session_structure
from openspace.domain.models import Attendance, Feedback, Rating, Room, Session, Slot, Topic
from openspace.utils.config import Settings, get_settings
from openspace.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")
SessionMutator = Callable[[Session], tuple[Session, T]]


class SessionNotFoundError(LookupError):
    """Raised when a session id is not stored."""

    def __init__(self, session_id: int) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


def _encode_topic_records(topic: Topic) -> tuple[str, str, str, str]:
    return (
        json.dumps([{"name": item.name} for item in topic.attendees]),
        json.dumps(list(topic.demands)),
        json.dumps([{"name": item.name, "comment": item.comment} for item in topic.feedback]),
        json.dumps([{"name": item.name, "value": item.value} for item in topic.ratings]),
    )


def _decode_topic(row: sqlite3.Row) -> Topic:
    return Topic(
        topic_id=str(row["topic_id"]),
        name=str(row["name"]),
        description=row["description"],
        owner=row["owner"],
        room_id=row["room_id"],
        slot_id=row["slot_id"],
        attendees=tuple(Attendance(name=item["name"]) for item in json.loads(row["attendees_json"])),
        demands=tuple(str(item) for item in json.loads(row["demands_json"])),
        feedback=tuple(
            Feedback(name=item["name"], comment=item["comment"])
            for item in json.loads(row["feedback_json"])
        ),
        ratings=tuple(
            Rating(name=item["name"], value=int(item["value"]))
            for item in json.loads(row["ratings_json"])
        ),
        slots=int(row["slot_count"]),
    )


class SessionRepository:
    """Encapsulates SQLite access so scheduling logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._locks: dict[int, RLock] = {}
        self._locks_guard = Lock()

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def _lock_for(self, session_id: int) -> RLock:
        with self._locks_guard:
            return self._locks.setdefault(session_id, RLock())

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Sessions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL DEFAULT '',
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        session_id INTEGER NOT NULL,
                        room_id TEXT NOT NULL,
                        name TEXT NOT NULL DEFAULT '',
                        capacity INTEGER CHECK (capacity IS NULL OR capacity >= 0),
                        position INTEGER NOT NULL,
                        PRIMARY KEY (session_id, room_id),
                        FOREIGN KEY (session_id) REFERENCES Sessions(id) ON DELETE CASCADE
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Slots (
                        session_id INTEGER NOT NULL,
                        slot_id TEXT NOT NULL,
                        name TEXT NOT NULL DEFAULT '',
                        position INTEGER NOT NULL,
                        PRIMARY KEY (session_id, slot_id),
                        FOREIGN KEY (session_id) REFERENCES Sessions(id) ON DELETE CASCADE
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Topics (
                        session_id INTEGER NOT NULL,
                        topic_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        description TEXT,
                        owner TEXT,
                        room_id TEXT,
                        slot_id TEXT,
                        attendees_json TEXT NOT NULL DEFAULT '[]',
                        demands_json TEXT NOT NULL DEFAULT '[]',
                        feedback_json TEXT NOT NULL DEFAULT '[]',
                        ratings_json TEXT NOT NULL DEFAULT '[]',
                        slot_count INTEGER NOT NULL DEFAULT 1 CHECK (slot_count > 0),
                        position INTEGER NOT NULL,
                        PRIMARY KEY (session_id, topic_id),
                        FOREIGN KEY (session_id) REFERENCES Sessions(id) ON DELETE CASCADE
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_topics_session_position
                    ON Topics(session_id, position);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_session_if_empty(self) -> Optional[int]:
        """Store a small demo session when no session exists yet."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Sessions;")
            if int(cursor.fetchone()["count"]) > 0:
                logger.info("Sessions already present; skipping demo seed")
                return None

        people = [f"attendee-{index}" for index in range(1, 13)]
        demo = Session(
            session_id=0,
            name="Demo open space",
            rooms=(
                Room(room_id="main-hall", name="Main hall", capacity=10),
                Room(room_id="library", name="Library", capacity=6),
                Room(room_id="kitchen", name="Kitchen", capacity=4),
            ),
            slots=(
                Slot(slot_id="morning", name="09:00 - 10:00"),
                Slot(slot_id="late-morning", name="10:15 - 11:15"),
                Slot(slot_id="afternoon", name="13:00 - 14:00"),
            ),
            topics=(
                Topic(
                    topic_id="property-testing",
                    name="Property-based testing in practice",
                    owner="ada",
                    attendees=tuple(Attendance(name=name) for name in people[:9]),
                ),
                Topic(
                    topic_id="typing",
                    name="Gradual typing war stories",
                    owner="ada",
                    attendees=tuple(Attendance(name=name) for name in people[:5]),
                ),
                Topic(
                    topic_id="pairing",
                    name="Remote pairing setups",
                    owner="linus",
                    attendees=tuple(Attendance(name=name) for name in people[:3]),
                ),
                Topic(
                    topic_id="retro",
                    name="Running better retros",
                    owner="grace",
                    attendees=tuple(Attendance(name=name) for name in people[:7]),
                ),
            ),
        )
        created = self.create_session(demo)
        logger.info("Demo session seeded | session_id=%s", created.session_id)
        return created.session_id

    def _write_children(self, cursor: sqlite3.Cursor, session: Session) -> None:
        for table in ("Topics", "Slots", "Rooms"):
            cursor.execute(f"DELETE FROM {table} WHERE session_id = ?;", (session.session_id,))

        cursor.executemany(
            """
            INSERT INTO Rooms (session_id, room_id, name, capacity, position)
            VALUES (?, ?, ?, ?, ?);
            """,
            [
                (session.session_id, room.room_id, room.name, room.capacity, position)
                for position, room in enumerate(session.rooms)
            ],
        )
        cursor.executemany(
            """
            INSERT INTO Slots (session_id, slot_id, name, position)
            VALUES (?, ?, ?, ?);
            """,
            [
                (session.session_id, slot.slot_id, slot.name, position)
                for position, slot in enumerate(session.slots)
            ],
        )
        cursor.executemany(
            """
            INSERT INTO Topics (
                session_id, topic_id, name, description, owner, room_id, slot_id,
                attendees_json, demands_json, feedback_json, ratings_json,
                slot_count, position
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    session.session_id,
                    topic.topic_id,
                    topic.name,
                    topic.description,
                    topic.owner,
                    topic.room_id,
                    topic.slot_id,
                    *_encode_topic_records(topic),
                    topic.slots,
                    position,
                )
                for position, topic in enumerate(session.topics)
            ],
        )

    def _load(self, conn: sqlite3.Connection, session_id: int) -> Optional[Session]:
        cursor = conn.cursor()
        cursor.execute("SELECT id, name FROM Sessions WHERE id = ?;", (session_id,))
        row = cursor.fetchone()
        if row is None:
            return None

        cursor.execute(
            "SELECT room_id, name, capacity FROM Rooms WHERE session_id = ? ORDER BY position ASC;",
            (session_id,),
        )
        rooms = tuple(
            Room(
                room_id=str(item["room_id"]),
                name=str(item["name"]),
                capacity=None if item["capacity"] is None else int(item["capacity"]),
            )
            for item in cursor.fetchall()
        )
        cursor.execute(
            "SELECT slot_id, name FROM Slots WHERE session_id = ? ORDER BY position ASC;",
            (session_id,),
        )
        slots = tuple(
            Slot(slot_id=str(item["slot_id"]), name=str(item["name"]))
            for item in cursor.fetchall()
        )
        cursor.execute(
            "SELECT * FROM Topics WHERE session_id = ? ORDER BY position ASC;",
            (session_id,),
        )
        topics = tuple(_decode_topic(item) for item in cursor.fetchall())
        return Session(
            session_id=int(row["id"]),
            name=str(row["name"]),
            rooms=rooms,
            slots=slots,
            topics=topics,
        )

    def create_session(self, session: Session) -> Session:
        """Insert a session with its rooms, slots and topics; returns it with its new id."""
        validate_session_structure(session)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("INSERT INTO Sessions (name) VALUES (?);", (session.name,))
            stored = replace(session, session_id=int(cursor.lastrowid))
            self._write_children(cursor, stored)
            conn.commit()
        logger.info(
            "Session created | session_id=%s | rooms=%s | slots=%s | topics=%s",
            stored.session_id,
            len(stored.rooms),
            len(stored.slots),
            len(stored.topics),
        )
        return stored

    def get_session(self, session_id: int) -> Optional[Session]:
        with self._connect() as conn:
            return self._load(conn, session_id)

    def list_sessions(self, limit: Optional[int] = None) -> list[Session]:
        """Most recently created sessions first."""
        with self._connect() as conn:
            cursor = conn.cursor()
            if limit is None:
                cursor.execute("SELECT id FROM Sessions ORDER BY id DESC;")
            else:
                cursor.execute("SELECT id FROM Sessions ORDER BY id DESC LIMIT ?;", (limit,))
            session_ids = [int(row["id"]) for row in cursor.fetchall()]
            sessions = [self._load(conn, session_id) for session_id in session_ids]
        return [session for session in sessions if session is not None]

    def delete_session(self, session_id: int) -> bool:
        with self._lock_for(session_id):
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM Sessions WHERE id = ?;", (session_id,))
                conn.commit()
                deleted = cursor.rowcount > 0
        if deleted:
            with self._locks_guard:
                self._locks.pop(session_id, None)
            logger.info("Session deleted | session_id=%s", session_id)
        return deleted

    def update(self, session_id: int, mutator: SessionMutator[T]) -> T:
        """Read-modify-write one session under its exclusive lock.

        The mutator's session is written only when it returns normally; an
        exception rolls the transaction back and propagates unchanged.
        """
        with self._lock_for(session_id):
            with self._connect() as conn:
                current = self._load(conn, session_id)
                if current is None:
                    raise SessionNotFoundError(session_id)
                updated, payload = mutator(current)
                if updated.session_id != session_id:
                    raise ValueError("mutator must not change the session id")
                validate_session_structure(updated)
                cursor = conn.cursor()
                cursor.execute(
                    "UPDATE Sessions SET name = ? WHERE id = ?;",
                    (updated.name, session_id),
                )
                self._write_children(cursor, updated)
                conn.commit()
            return payload

    def count_sessions(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Sessions;")
            return int(cursor.fetchone()["count"])
