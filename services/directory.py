import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from services import memory

logger = logging.getLogger(__name__)


class UnknownParticipantError(LookupError):
    def __init__(self, handle: str):
        self.handle = handle
        super().__init__(f"No participant with handle {handle!r}")


@dataclass(frozen=True)
class Participant:
    id: int
    handle: str
    full_name: str
    email: Optional[str] = None
    username: Optional[str] = None
    is_bot: bool = False
    is_admin: bool = False
    send_report: bool = False


def _get_conn() -> sqlite3.Connection:
    return memory.get_conn()

def _clean_username(username: Optional[str]) -> Optional[str]:
    cleaned = str(username or "").strip().lstrip("@").lower()
    return cleaned or None


def _from_row(row: sqlite3.Row) -> Participant:
    return Participant(
        id=int(row["id"]),
        handle=str(row["handle"]),
        full_name=str(row["full_name"] or row["handle"]),
        email=row["email"],
        username=row["username"],
        is_bot=bool(row["is_bot"]),
        is_admin=bool(row["is_admin"]),
        send_report=bool(row["send_report"]),
    )


def upsert_user(
    handle: str,
    full_name: str,
    *,
    is_bot: bool = False,
    is_admin: Optional[bool] = None,
    email: Optional[str] = None,
    send_report: Optional[bool] = None,
    username: Optional[str] = None,
) -> Participant:
    """Insert or refresh a participant. Flags left as None keep their stored value."""
    handle = str(handle).strip()
    if not handle:
        raise ValueError("Participant handle cannot be empty.")
    username = _clean_username(username)

    con = _get_conn()
    try:
        con.execute(
            """
            INSERT INTO users (handle, username, full_name, email, is_bot, is_admin, send_report)
            VALUES (?, ?, ?, ?, ?, COALESCE(?, 0), COALESCE(?, 0))
            ON CONFLICT(handle) DO UPDATE SET
                username = COALESCE(excluded.username, users.username),
                full_name = excluded.full_name,
                email = COALESCE(excluded.email, users.email),
                is_bot = excluded.is_bot,
                is_admin = COALESCE(?, users.is_admin),
                send_report = COALESCE(?, users.send_report)
            """,
            (
                handle,
                username,
                str(full_name or "").strip() or handle,
                email,
                int(bool(is_bot)),
                None if is_admin is None else int(is_admin),
                None if send_report is None else int(send_report),
                None if is_admin is None else int(is_admin),
                None if send_report is None else int(send_report),
            ),
        )
        con.commit()
        row = con.execute("SELECT * FROM users WHERE handle = ?", (handle,)).fetchone()
        return _from_row(row)
    finally:
        con.close()

def resolve_by_handle(handle: str) -> Optional[Participant]:
    con = _get_conn()
    try:
        row = con.execute("SELECT * FROM users WHERE handle = ?", (str(handle),)).fetchone()
    finally:
        con.close()
    return _from_row(row) if row else None

def resolve_by_username(username: str) -> Optional[Participant]:
    """Find a participant by their chat @name, ignoring case and a leading @."""
    cleaned = _clean_username(username)
    if not cleaned:
        return None
    con = _get_conn()
    try:
        row = con.execute("SELECT * FROM users WHERE username = ?", (cleaned,)).fetchone()
    finally:
        con.close()
    return _from_row(row) if row else None

def get_participant(user_id: int) -> Participant:
    con = _get_conn()
    try:
        row = con.execute("SELECT * FROM users WHERE id = ?", (int(user_id),)).fetchone()
    finally:
        con.close()
    if not row:
        raise UnknownParticipantError(str(user_id))
    return _from_row(row)

def require_by_handle(handle: str) -> Participant:
    participant = resolve_by_handle(handle)
    if participant is None:
        raise UnknownParticipantError(handle)
    return participant

def display_name_for_handle(handle: str) -> Optional[str]:
    participant = resolve_by_handle(handle)
    return participant.full_name if participant else None

def is_bot(participant: Participant) -> bool:
    return participant.is_bot

def is_admin(participant: Participant) -> bool:
    return participant.is_admin
