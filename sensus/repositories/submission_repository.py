import json
import logging
import sqlite3
from datetime import datetime

from sensus.db.connection import connection
from sensus.models.submission import STATUS_MATCHED, Submission
from sensus.repositories.base import AbstractSubmissionRepository

logger = logging.getLogger(__name__)

_CLAIM_SQL = """
    UPDATE submissions
    SET status = 'matched', matched_with = :new_id
    WHERE id = (
        SELECT c.id FROM submissions AS c
        WHERE c.status = 'unmatched'
          AND c.identity_token != :identity_token
          AND c.id != :new_id
          AND (:not_before IS NULL OR c.created_at >= :not_before)
          AND EXISTS (
              SELECT 1 FROM json_each(c.emotional_tags) AS t
              WHERE t.value IN (SELECT value FROM json_each(:tags))
          )
        ORDER BY c.created_at DESC, c.rowid DESC
        LIMIT 1
    )
    AND status = 'unmatched'
    RETURNING *
"""

_INSERT_SQL = """
    INSERT INTO submissions
        (id, content_type, content, emotional_tags, status,
         matched_with, identity_token, created_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""


def _timestamp(value: datetime) -> str:
    # Fixed-width ISO text so lexical order in SQL matches chronological order.
    return value.isoformat(timespec="microseconds")


def _row_to_submission(row: sqlite3.Row) -> Submission:
    return Submission(
        id=row["id"],
        content_type=row["content_type"],
        content=row["content"],
        emotional_tags=json.loads(row["emotional_tags"]),
        status=row["status"],
        matched_with=row["matched_with"],
        identity_token=row["identity_token"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SubmissionRepository(AbstractSubmissionRepository):
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _insert(
        self,
        conn: sqlite3.Connection,
        submission: Submission,
        status: str,
        matched_with: str | None,
    ) -> None:
        conn.execute(
            _INSERT_SQL,
            (
                submission.id,
                submission.content_type,
                submission.content,
                json.dumps(submission.emotional_tags),
                status,
                matched_with,
                submission.identity_token,
                _timestamp(submission.created_at),
            ),
        )

    def insert(self, submission: Submission) -> None:
        with connection(self._db_path) as conn:
            self._insert(conn, submission, submission.status, submission.matched_with)

    def get_by_id(self, submission_id: str) -> Submission | None:
        with connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM submissions WHERE id = ?", (submission_id,)
            ).fetchone()
        return _row_to_submission(row) if row else None

    def latest_for_identity(self, identity_token: str) -> Submission | None:
        with connection(self._db_path) as conn:
            row = conn.execute(
                """
                SELECT * FROM submissions
                WHERE identity_token = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """,
                (identity_token,),
            ).fetchone()
        return _row_to_submission(row) if row else None

    def claim_candidate(
        self, submission: Submission, not_before: datetime | None = None
    ) -> Submission | None:
        """
        Claim and insert inside one IMMEDIATE transaction.

        The write lock is held from the candidate lookup until the new row is committed, so a
        candidate can only be claimed once and both halves of a pair become durable together.
        """
        params = {
            "new_id": submission.id,
            "identity_token": submission.identity_token,
            "tags": json.dumps(submission.emotional_tags),
            "not_before": _timestamp(not_before) if not_before else None,
        }
        with connection(self._db_path) as conn:
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute(_CLAIM_SQL, params).fetchall()
            candidate = _row_to_submission(rows[0]) if rows else None
            if candidate is None:
                self._insert(conn, submission, submission.status, submission.matched_with)
            else:
                self._insert(conn, submission, STATUS_MATCHED, candidate.id)

        if candidate is not None:
            logger.debug("[store] claimed | candidate=%s | by=%s", candidate.id, submission.id)
        return candidate
