"""Session repository for database operations.

Every write is a conditional version bump on the session row followed by the
turn statement, in one transaction. A writer holding a stale version gets
ConcurrentModificationError and must re-read before trying again.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional

import aiosqlite
import structlog

from interview_practice.core.exceptions import (
    ConcurrentModificationError,
    StorageUnavailableError,
)
from interview_practice.domain.models.session import Session
from interview_practice.domain.models.turn import AnalysisScores, Turn

log = structlog.get_logger(__name__)


TURN_COLUMNS = (
    "session_id, turn_index, role, text, timestamp, "
    "answer, time_taken, confidence, answered_at, "
    "analysis, transcription, duration, recorded_at, "
    "category, difficulty, time_limit"
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SessionRepository:
    """Repository for session and turn persistence."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except aiosqlite.IntegrityError as e:
            # Duplicate (session_id, turn_index): another writer got there first
            raise ConcurrentModificationError(f"Conflicting write: {e}") from e
        except aiosqlite.Error as e:
            log.error("session_storage_error", db_path=str(self.db_path), error=str(e))
            raise StorageUnavailableError(f"Session storage unavailable: {e}") from e

    async def _bump_version(
        self, db: aiosqlite.Connection, session_id: str, expected_version: int
    ) -> int:
        cursor = await db.execute(
            "UPDATE sessions SET version = version + 1 WHERE id = ? AND version = ?",
            (session_id, expected_version),
        )
        if cursor.rowcount == 0:
            log.info(
                "session_version_conflict",
                session_id=session_id,
                expected_version=expected_version,
            )
            raise ConcurrentModificationError(
                f"Session {session_id} changed since version {expected_version}"
            )
        return expected_version + 1

    # ==================== WRITES ====================

    async def create(self, session: Session) -> Session:
        """Insert a new session together with any seeded turns."""
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO sessions (id, user_id, persona_id, persona_name, mode, "
                "status, version, created_at, completed_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    session.session_id,
                    session.user_id,
                    session.persona_id,
                    session.persona_name,
                    session.mode.value,
                    session.status.value,
                    session.version,
                    _iso(session.created_at),
                    _iso(session.completed_at),
                ),
            )
            for turn in session.turns:
                await self._insert_turn(db, session.session_id, turn)
            await db.commit()

        log.info(
            "session_created",
            session_id=session.session_id,
            persona_id=session.persona_id,
            mode=session.mode.value,
        )
        return session

    async def append_turn(self, session_id: str, turn: Turn, expected_version: int) -> int:
        """Append ``turn``; returns the new session version."""
        async with self._connect() as db:
            version = await self._bump_version(db, session_id, expected_version)
            await self._insert_turn(db, session_id, turn)
            await db.commit()
            return version

    async def update_turn(self, session_id: str, turn: Turn, expected_version: int) -> int:
        """Overwrite the mutable fields of an existing turn; returns the new version."""
        async with self._connect() as db:
            version = await self._bump_version(db, session_id, expected_version)
            await db.execute(
                """UPDATE turns SET
                    answer = ?, time_taken = ?, confidence = ?, answered_at = ?,
                    analysis = ?, transcription = ?, duration = ?, recorded_at = ?
                   WHERE session_id = ? AND turn_index = ?""",
                (
                    turn.answer,
                    turn.time_taken,
                    turn.confidence,
                    _iso(turn.answered_at),
                    turn.analysis.model_dump_json() if turn.analysis else None,
                    turn.transcription,
                    turn.duration,
                    _iso(turn.recorded_at),
                    session_id,
                    turn.index,
                ),
            )
            await db.commit()
            return version

    async def mark_completed(
        self, session_id: str, completed_at: datetime, expected_version: int
    ) -> int:
        """Set status to completed; returns the new version."""
        async with self._connect() as db:
            version = await self._bump_version(db, session_id, expected_version)
            await db.execute(
                "UPDATE sessions SET status = 'completed', completed_at = ? WHERE id = ?",
                (_iso(completed_at), session_id),
            )
            await db.commit()
            return version

    async def _insert_turn(self, db: aiosqlite.Connection, session_id: str, turn: Turn) -> None:
        await db.execute(
            f"INSERT INTO turns ({TURN_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                session_id,
                turn.index,
                turn.role.value,
                turn.text,
                _iso(turn.timestamp),
                turn.answer,
                turn.time_taken,
                turn.confidence,
                _iso(turn.answered_at),
                turn.analysis.model_dump_json() if turn.analysis else None,
                turn.transcription,
                turn.duration,
                _iso(turn.recorded_at),
                turn.category,
                turn.difficulty,
                turn.time_limit,
            ),
        )

    # ==================== READS ====================

    async def get(self, session_id: str) -> Optional[Session]:
        """Get a session with its turns, or None."""
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM sessions WHERE id = ?", (session_id,))
            row = await cursor.fetchone()
            if not row:
                return None

            cursor = await db.execute(
                f"SELECT {TURN_COLUMNS} FROM turns WHERE session_id = ? ORDER BY turn_index",
                (session_id,),
            )
            turn_rows = await cursor.fetchall()
            return self._row_to_session(row, [self._row_to_turn(r) for r in turn_rows])

    async def list_for_user(self, user_id: str) -> List[Session]:
        """All sessions owned by ``user_id``, newest first."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM sessions WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            session_rows = await cursor.fetchall()

            cursor = await db.execute(
                f"""SELECT {TURN_COLUMNS} FROM turns
                   WHERE session_id IN (SELECT id FROM sessions WHERE user_id = ?)
                   ORDER BY session_id, turn_index""",
                (user_id,),
            )
            turns_by_session: Dict[str, List[Turn]] = {}
            for r in await cursor.fetchall():
                turns_by_session.setdefault(r["session_id"], []).append(self._row_to_turn(r))

            return [
                self._row_to_session(row, turns_by_session.get(row["id"], []))
                for row in session_rows
            ]

    def _row_to_turn(self, row: aiosqlite.Row) -> Turn:
        """Convert a database row to a Turn model."""
        return Turn(
            index=row["turn_index"],
            role=row["role"],
            text=row["text"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            answer=row["answer"],
            time_taken=row["time_taken"],
            confidence=row["confidence"],
            answered_at=_parse(row["answered_at"]),
            analysis=AnalysisScores.model_validate_json(row["analysis"])
            if row["analysis"]
            else None,
            transcription=row["transcription"],
            duration=row["duration"],
            recorded_at=_parse(row["recorded_at"]),
            category=row["category"],
            difficulty=row["difficulty"],
            time_limit=row["time_limit"],
        )

    def _row_to_session(self, row: aiosqlite.Row, turns: List[Turn]) -> Session:
        """Convert a database row to a Session model."""
        return Session(
            session_id=row["id"],
            user_id=row["user_id"],
            persona_id=row["persona_id"],
            persona_name=row["persona_name"],
            mode=row["mode"],
            status=row["status"],
            turns=turns,
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=_parse(row["completed_at"]),
            version=row["version"],
        )
