"""Task and comment services.

Services get their collaborators (session, cache, blob store, notifier)
through the constructor. Ownership is checked before any read or write of the
target row, and input is validated before anything is mutated, so a rejected
request leaves no trace: no row change, no cache invalidation, no
notification.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any, BinaryIO, Mapping, Optional

from fastapi import UploadFile
from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from .cache import CacheStore, invalidate_task_lists, read_through, task_list_cache_key
from .config import settings
from .db_models import CommentDB, TaskDB, UserDB
from .errors import AuthorizationError, NotFoundError, ValidationError, errors_from_pydantic
from .models import Comment, CommentAuthor, Task, TaskCreate, TaskUpdate
from .notifications import Notifier, Recipient, comment_added_message
from .storage import BlobStore, attachment_path, validate_attachment
from . import store_db

logger = logging.getLogger("taskhub.services")


def _validate_model(model: type[BaseModel], data: Mapping[str, Any], errors: dict[str, list[str]]):
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as exc:
        errors.update(errors_from_pydantic(exc.errors()))
        return None


def _read_upload(upload: Optional[UploadFile], errors: dict[str, list[str]]) -> Optional[bytes]:
    if upload is None or not upload.filename:
        return None
    try:
        return validate_attachment(upload)
    except ValidationError as exc:
        errors.update(exc.errors)
        return None


class TaskService:
    def __init__(
        self,
        db: Session,
        cache: CacheStore,
        blobs: BlobStore,
        *,
        ttl: int = settings.TASK_LIST_CACHE_TTL,
    ):
        self.db = db
        self.cache = cache
        self.blobs = blobs
        self.ttl = ttl

    # --- reads ---

    def list(self, user: UserDB, *, status: Optional[str] = None, search: Optional[str] = None) -> list[dict]:
        """Serialized tasks of `user`, served through the listing cache."""
        key = task_list_cache_key(user.id, status, search)

        def load() -> list[dict]:
            logger.info("loading task list from database user_id=%s key=%s", user.id, key)
            rows = store_db.list_tasks(self.db, owner_id=user.id, status=status, search=search)
            return [Task.from_row(r).model_dump(mode="json") for r in rows]

        return read_through(self.cache, key, self.ttl, load)

    def get(self, user: UserDB, task_id: int) -> TaskDB:
        row = store_db.get_task(self.db, task_id)
        if row is None:
            raise NotFoundError("Task not found")
        if row.user_id != user.id:
            raise AuthorizationError()
        return row

    def open_attachment(self, user: UserDB, task_id: int) -> tuple[BinaryIO, str]:
        """Return an open stream over the task's attachment and its file name."""
        row = self.get(user, task_id)
        if not row.attachment:
            raise NotFoundError("No attachment associated with this task.")
        if not self.blobs.exists(row.attachment):
            raise NotFoundError("The file does not exist on the server.")
        return self.blobs.open(row.attachment), PurePosixPath(row.attachment).name

    # --- writes ---

    def create(self, user: UserDB, data: Mapping[str, Any], attachment: Optional[UploadFile] = None) -> TaskDB:
        errors: dict[str, list[str]] = {}
        payload = _validate_model(TaskCreate, data, errors)
        content = _read_upload(attachment, errors)
        if errors:
            raise ValidationError(errors)

        row = store_db.create_task(self.db, payload, owner_id=user.id)
        if content is not None:
            row.attachment = attachment_path(row.id, attachment.filename)
            self.blobs.save(row.attachment, content)
        self.db.commit()
        self.db.refresh(row)

        invalidate_task_lists(self.cache, user.id)
        logger.info("task created task_id=%s user_id=%s", row.id, user.id)
        return row

    def update(
        self,
        user: UserDB,
        task_id: int,
        data: Mapping[str, Any],
        attachment: Optional[UploadFile] = None,
    ) -> TaskDB:
        row = self.get(user, task_id)

        errors: dict[str, list[str]] = {}
        payload = _validate_model(TaskUpdate, data, errors)
        content = _read_upload(attachment, errors)
        changes: dict[str, Any] = {}
        if payload is not None:
            changes = payload.model_dump(exclude_unset=True)
            for field in ("title", "status"):
                if field in changes and changes[field] is None:
                    errors[field] = [f"The {field} field is required."]
            if changes.get("description") == "":
                changes["description"] = None
        if errors:
            raise ValidationError(errors)

        if content is not None:
            if row.attachment:
                self.blobs.delete(row.attachment)
            changes["attachment"] = attachment_path(row.id, attachment.filename)
            self.blobs.save(changes["attachment"], content)

        store_db.update_task(self.db, row, changes)
        self.db.commit()
        self.db.refresh(row)

        invalidate_task_lists(self.cache, user.id)
        return row

    def delete(self, user: UserDB, task_id: int) -> TaskDB:
        """Soft delete; the attachment blob is removed, the row is kept."""
        row = self.get(user, task_id)
        if row.attachment and self.blobs.exists(row.attachment):
            self.blobs.delete(row.attachment)
        store_db.soft_delete_task(self.db, row)
        self.db.commit()

        invalidate_task_lists(self.cache, user.id)
        logger.info("task soft-deleted task_id=%s user_id=%s", row.id, user.id)
        return row

    def detach_attachment(self, user: UserDB, task_id: int) -> TaskDB:
        row = self.get(user, task_id)
        if not row.attachment:
            raise NotFoundError("No attachment found.")
        if self.blobs.exists(row.attachment):
            self.blobs.delete(row.attachment)
        store_db.update_task(self.db, row, {"attachment": None})
        self.db.commit()
        self.db.refresh(row)

        invalidate_task_lists(self.cache, user.id)
        return row


def _clean_content(content: Any) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError.single("content", "The content field is required.")
    content = content.strip()
    if len(content) < 2:
        raise ValidationError.single("content", "The content field must be at least 2 characters.")
    return content


class CommentService:
    def __init__(self, db: Session, notifier: Notifier, *, base_url: str = settings.APP_URL):
        self.db = db
        self.notifier = notifier
        self.base_url = base_url

    def _task(self, task_id: int) -> TaskDB:
        task = store_db.get_task(self.db, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def _comment(self, comment_id: int) -> CommentDB:
        row = store_db.get_comment(self.db, comment_id)
        if row is None:
            raise NotFoundError("Comment not found")
        return row

    def authored(self, comment_id: int, actor: UserDB) -> CommentDB:
        row = self._comment(comment_id)
        if row.user_id != actor.id:
            raise AuthorizationError()
        return row

    @staticmethod
    def _to_schema(row: CommentDB, author: Optional[UserDB], task: Optional[TaskDB] = None) -> Comment:
        return Comment(
            id=row.id,
            task_id=row.task_id,
            user_id=row.user_id,
            content=row.content,
            created_at=row.created_at,
            updated_at=row.updated_at,
            user=CommentAuthor.model_validate(author) if author is not None else None,
            task=Task.from_row(task) if task is not None else None,
        )

    def list(self, task_id: int) -> list[Comment]:
        """Comments of a task with their authors, newest first."""
        self._task(task_id)
        rows = store_db.list_comments(self.db, task_id)
        authors = store_db.get_users(self.db, (r.user_id for r in rows))
        return [self._to_schema(r, authors.get(r.user_id)) for r in rows]

    def create(self, task_id: int, author: UserDB, content: Any) -> Comment:
        task = self._task(task_id)
        text = _clean_content(content)
        row = store_db.create_comment(self.db, task_id=task.id, user_id=author.id, content=text)
        self._notify_owner(task, row)
        return self._to_schema(row, author)

    def get(self, comment_id: int, actor: UserDB) -> Comment:
        """The comment with its author; the task is embedded only for its owner."""
        row = self._comment(comment_id)
        author = store_db.get_user(self.db, row.user_id)
        task = store_db.get_task(self.db, row.task_id, include_deleted=True)
        if task is not None and task.user_id != actor.id:
            task = None
        return self._to_schema(row, author, task)

    def update(self, comment_id: int, actor: UserDB, content: Any) -> Comment:
        row = self.authored(comment_id, actor)
        text = _clean_content(content)
        row = store_db.update_comment(self.db, row, content=text)
        return self._to_schema(row, actor)

    def delete(self, comment_id: int, actor: UserDB) -> None:
        row = self.authored(comment_id, actor)
        store_db.delete_comment(self.db, row)

    def _notify_owner(self, task: TaskDB, comment: CommentDB) -> None:
        owner = store_db.get_user(self.db, task.user_id)
        if owner is None:
            logger.warning("task owner missing task_id=%s user_id=%s", task.id, task.user_id)
            return
        message = comment_added_message(
            task_id=task.id,
            task_title=task.title,
            content=comment.content,
            base_url=self.base_url,
        )
        try:
            self.notifier.send(Recipient(id=owner.id, name=owner.name, email=owner.email), message)
        except Exception:
            # dispatch failures never fail the comment request
            logger.exception("notification dispatch failed task_id=%s comment_id=%s", task.id, comment.id)
