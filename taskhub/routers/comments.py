# PURPOSE: comments on tasks; only the author may edit or delete a comment.
# Bodies are JSON ({"content": ...}) or form data.

from typing import Any, List

from fastapi import APIRouter, Depends, Request, status

from ..api.deps import get_comment_service, read_json_object
from ..auth import get_current_user
from ..db_models import CommentDB, UserDB
from ..models import Comment, CommentMessage, MessageResponse
from ..services import CommentService

router = APIRouter(tags=["comments"])


async def read_comment_content(request: Request) -> Any:
    if request.headers.get("content-type", "").startswith("application/json"):
        return (await read_json_object(request)).get("content")
    return (await request.form()).get("content")


def authored_comment(
    comment_id: int,
    user: UserDB = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
) -> CommentDB:
    """The path comment, checked for existence and authorship before any body is read."""
    return service.authored(comment_id, user)


@router.get("/tasks/{task_id}/comments", response_model=List[Comment])
async def list_comments(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    return service.list(task_id)


@router.post(
    "/tasks/{task_id}/comments",
    response_model=CommentMessage,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    content: Any = Depends(read_comment_content),
    service: CommentService = Depends(get_comment_service),
):
    comment = service.create(task_id, user, content)
    return CommentMessage(message="Comment added successfully", comment=comment)


@router.get("/comments/{comment_id}", response_model=Comment)
async def get_comment(
    comment_id: int,
    user: UserDB = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    return service.get(comment_id, user)


@router.put("/comments/{comment_id}", response_model=CommentMessage)
async def update_comment(
    comment_id: int,
    user: UserDB = Depends(get_current_user),
    comment: CommentDB = Depends(authored_comment),
    content: Any = Depends(read_comment_content),
    service: CommentService = Depends(get_comment_service),
):
    updated = service.update(comment_id, user, content)
    return CommentMessage(message="Comment updated", comment=updated)


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: int,
    user: UserDB = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    service.delete(comment_id, user)
    return MessageResponse(message="Comment deleted successfully")
