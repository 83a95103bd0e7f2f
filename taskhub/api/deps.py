from typing import Any, Dict, Optional

from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from ..cache import CacheStore
from ..db import get_db
from ..errors import ValidationError
from ..notifications import Notifier
from ..services import CommentService, TaskService
from ..storage import BlobStore


def parse_status(status: Optional[str] = Query(None, max_length=32)) -> Optional[str]:
    """Listing filter: empty or 'all' means no filter.

    Any other value is an equality filter, so an unknown status lists nothing.
    """
    status = (status or "").strip()
    return None if status in ("", "all") else status


def parse_search(search: Optional[str] = Query(None, max_length=255)) -> Optional[str]:
    search = (search or "").strip()
    return search or None


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Body of a JSON request as a dict; malformed bodies are a 422 on `body`."""
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError.single("body", "The request body must be valid JSON.")
    if not isinstance(body, dict):
        raise ValidationError.single("body", "The request body must be a JSON object.")
    return body


# --- Collaborators (defaults live on app.state; tests override these) ---


def get_cache(request: Request) -> CacheStore:
    return request.app.state.cache


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_task_service(
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
    blobs: BlobStore = Depends(get_blob_store),
) -> TaskService:
    return TaskService(db, cache, blobs)


def get_comment_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> CommentService:
    return CommentService(db, notifier)
