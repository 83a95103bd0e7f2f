# PURPOSE: /tasks CRUD, attachment download/detach.
# Create/update accept JSON or form data (multipart when a file is attached);
# form clients that cannot send PUT may POST with _method=PUT.

import mimetypes
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse
from starlette.datastructures import UploadFile

from ..api.deps import get_task_service, parse_search, parse_status, read_json_object
from ..auth import get_current_user
from ..db_models import TaskDB, UserDB
from ..errors import ValidationError
from ..models import MessageResponse, Task, TaskMessage
from ..services import TaskService
from ..storage import iter_blob

router = APIRouter(prefix="/tasks", tags=["tasks"])


@dataclass
class TaskPayload:
    fields: Dict[str, Any]
    attachment: Optional[UploadFile] = None


async def read_task_payload(request: Request) -> TaskPayload:
    """Collect task fields from a JSON body or a (multipart) form."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        return TaskPayload(fields=await read_json_object(request))

    form = await request.form()
    fields = {k: v for k, v in form.items() if isinstance(v, str)}
    upload = form.get("attachment")
    if isinstance(upload, UploadFile):
        return TaskPayload(fields=fields, attachment=upload)
    if fields.pop("attachment", ""):
        raise ValidationError.single("attachment", "The attachment field must be a file.")
    return TaskPayload(fields=fields)


def owned_task(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskDB:
    """The path task, checked for existence and ownership before any body is read."""
    return service.get(user, task_id)


@router.get("", response_model=List[Task])
async def list_tasks(
    user: UserDB = Depends(get_current_user),
    status: Optional[str] = Depends(parse_status),
    search: Optional[str] = Depends(parse_search),
    service: TaskService = Depends(get_task_service),
):
    return service.list(user, status=status, search=search)


@router.post("", response_model=TaskMessage, status_code=status.HTTP_201_CREATED)
async def create_task(
    response: Response,
    user: UserDB = Depends(get_current_user),
    payload: TaskPayload = Depends(read_task_payload),
    service: TaskService = Depends(get_task_service),
):
    task = service.create(user, payload.fields, payload.attachment)
    response.headers["Location"] = f"/api/tasks/{task.id}"
    return TaskMessage(message="Task created successfully", task=Task.from_row(task))


@router.get("/{task_id}", response_model=Task)
async def get_task(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return Task.from_row(service.get(user, task_id))


@router.put("/{task_id}", response_model=TaskMessage)
async def put_task(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    task: TaskDB = Depends(owned_task),
    payload: TaskPayload = Depends(read_task_payload),
    service: TaskService = Depends(get_task_service),
):
    updated = service.update(user, task_id, payload.fields, payload.attachment)
    return TaskMessage(message="Task updated successfully", task=Task.from_row(updated))


@router.post("/{task_id}", response_model=TaskMessage)
async def post_task_override(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    task: TaskDB = Depends(owned_task),
    payload: TaskPayload = Depends(read_task_payload),
    service: TaskService = Depends(get_task_service),
):
    """Form-friendly update: POST with `_method=PUT` (or PATCH)."""
    method = str(payload.fields.get("_method", "")).upper()
    if method not in ("PUT", "PATCH"):
        return Response(status_code=status.HTTP_405_METHOD_NOT_ALLOWED, headers={"Allow": "GET, PUT, DELETE"})
    updated = service.update(user, task_id, payload.fields, payload.attachment)
    return TaskMessage(message="Task updated successfully", task=Task.from_row(updated))


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    service.delete(user, task_id)
    return MessageResponse(message="Task deleted successfully (Soft Deleted)")


@router.get("/{task_id}/download")
async def download_attachment(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    fh, filename = service.open_attachment(user, task_id)
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return StreamingResponse(
        iter_blob(fh),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{task_id}/attachment", response_model=MessageResponse)
async def remove_attachment(
    task_id: int,
    user: UserDB = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    service.detach_attachment(user, task_id)
    return MessageResponse(message="Attachment successfully removed.")
