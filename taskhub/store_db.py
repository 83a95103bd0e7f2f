# Task/comment/user queries. Every task query here excludes soft-deleted rows
# unless it says otherwise; ownership is enforced one level up in services.

from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .db_models import CommentDB, TaskDB, UserDB, now_utc


# --- Helpers ---------------------------------------------------------------


def _live_tasks(db: Session):
    return db.query(TaskDB).filter(TaskDB.deleted_at.is_(None))


def _apply_common_filters(
    query,
    *,
    owner_id: Optional[int] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
):
    """Apply shared filters to a TaskDB query."""
    if owner_id is not None:
        query = query.filter(TaskDB.user_id == owner_id)
    if status and status != "all":
        query = query.filter(TaskDB.status == status)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(TaskDB.title.ilike(like), TaskDB.description.ilike(like)))
    return query


# --- Users -----------------------------------------------------------------


def get_user(db: Session, user_id: int) -> Optional[UserDB]:
    return db.get(UserDB, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[UserDB]:
    return db.query(UserDB).filter(func.lower(UserDB.email) == email.lower()).one_or_none()


def get_users(db: Session, ids) -> dict[int, UserDB]:
    ids = set(ids)
    if not ids:
        return {}
    return {u.id: u for u in db.query(UserDB).filter(UserDB.id.in_(ids)).all()}


def count_tasks_per_user(db: Session) -> List[tuple[UserDB, int]]:
    """Every user with the number of their non-deleted tasks."""
    live = (
        db.query(TaskDB.user_id, func.count(TaskDB.id).label("n"))
        .filter(TaskDB.deleted_at.is_(None))
        .group_by(TaskDB.user_id)
        .subquery()
    )
    rows = (
        db.query(UserDB, func.coalesce(live.c.n, 0))
        .outerjoin(live, live.c.user_id == UserDB.id)
        .order_by(UserDB.id.asc())
        .all()
    )
    return [(user, int(n)) for user, n in rows]


# --- CRUD: Tasks -----------------------------------------------------------


def list_tasks(
    db: Session,
    *,
    owner_id: int,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[TaskDB]:
    """Owner's live tasks, newest first."""
    query = _apply_common_filters(_live_tasks(db), owner_id=owner_id, status=status, search=search)
    return query.order_by(TaskDB.created_at.desc(), TaskDB.id.desc()).all()


def create_task(db: Session, data, *, owner_id: int) -> TaskDB:
    """Add a task row and flush it so the id is known; the caller commits."""
    now = now_utc()
    row = TaskDB(
        user_id=owner_id,
        title=data.title,
        description=getattr(data, "description", None),
        status=getattr(data, "status", "pending"),
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.flush()
    return row


def get_task(db: Session, task_id: int, *, include_deleted: bool = False) -> Optional[TaskDB]:
    """Fetch a single task by id regardless of owner."""
    query = db.query(TaskDB) if include_deleted else _live_tasks(db)
    return query.filter(TaskDB.id == task_id).one_or_none()


# Fields a client may change on a task; anything else in a payload is dropped.
TASK_MUTABLE_FIELDS = ("title", "description", "status", "attachment")


def update_task(db: Session, row: TaskDB, changes: dict[str, Any]) -> TaskDB:
    """Apply allow-listed changes to a task row; the caller commits."""
    for field, value in changes.items():
        if field in TASK_MUTABLE_FIELDS:
            setattr(row, field, value)
    row.updated_at = now_utc()
    db.add(row)
    return row


def soft_delete_task(db: Session, row: TaskDB) -> TaskDB:
    row.deleted_at = now_utc()
    row.attachment = None
    db.add(row)
    return row


# --- CRUD: Comments --------------------------------------------------------


def list_comments(db: Session, task_id: int) -> List[CommentDB]:
    return (
        db.query(CommentDB)
        .filter(CommentDB.task_id == task_id)
        .order_by(CommentDB.created_at.desc(), CommentDB.id.desc())
        .all()
    )


def create_comment(db: Session, *, task_id: int, user_id: int, content: str) -> CommentDB:
    now = now_utc()
    row = CommentDB(task_id=task_id, user_id=user_id, content=content, created_at=now, updated_at=now)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_comment(db: Session, comment_id: int) -> Optional[CommentDB]:
    return db.get(CommentDB, comment_id)


def update_comment(db: Session, row: CommentDB, *, content: str) -> CommentDB:
    row.content = content
    row.updated_at = now_utc()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def delete_comment(db: Session, row: CommentDB) -> None:
    db.delete(row)
    db.commit()
