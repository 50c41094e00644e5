import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from swarm_tasks_ui.config import get_settings
from swarm_tasks_ui.logging_setup import setup_logging
from swarm_tasks_ui.models.task import CreateTaskRequest, MoveTaskRequest, TaskFieldsRequest
from swarm_tasks_ui.services.task_service import TaskService, build_task_service
from swarm_tasks_ui.storage.task_store import InvalidStateError, TaskNotFoundError

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# App setup
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Swarm Tasks API",
    description="Kanban backend over markdown task files.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------

class HealthStatus(BaseModel):
    status: str


class SuccessResponse(BaseModel):
    success: bool = True


class CreatedResponse(SuccessResponse):
    id: str


# -----------------------------------------------------------------------------
# Error mapping: every failure goes out as {"error": message}
# -----------------------------------------------------------------------------

@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        where = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{where}: {err.get('msg')}" if where else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "Invalid request"})


@app.exception_handler(TaskNotFoundError)
async def _not_found(request: Request, exc: TaskNotFoundError):
    return JSONResponse(status_code=404, content={"error": "Task not found"})


@app.exception_handler(InvalidStateError)
async def _invalid_state(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=400, content={"error": "Invalid state"})


@app.exception_handler(OSError)
async def _io_error(request: Request, exc: OSError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(Exception)
async def _unexpected_error(request: Request, exc: Exception):
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc)})


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def get_task_service() -> TaskService:
    return build_task_service(get_settings())


def _require_state(service: TaskService, state: Optional[str]) -> str:
    if not state or state not in service.states:
        raise HTTPException(status_code=400, detail="Invalid or missing state")
    return state


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@app.get("/health", response_model=HealthStatus)
def health():
    return {"status": "ok"}


@app.get("/api/tasks")
def get_all_tasks(service: TaskService = Depends(get_task_service)):
    """
    All tasks grouped by state, in board order.
    """
    return service.list_tasks()


@app.post("/api/tasks/{task_id}/move", response_model=SuccessResponse)
def move_task(task_id: str, payload: MoveTaskRequest, service: TaskService = Depends(get_task_service)):
    """
    Move the first task whose filename matches `task_id` into `toState`.
    """
    if payload.to_state not in service.states:
        raise HTTPException(status_code=400, detail="Invalid state")
    service.move_task(task_id, payload.to_state)
    return {"success": True}


@app.put("/api/tasks/{task_id}", response_model=SuccessResponse)
def update_task(
    task_id: str,
    payload: TaskFieldsRequest,
    state: Optional[str] = None,
    service: TaskService = Depends(get_task_service),
):
    """
    Overwrite the task file for `task_id` in `state`.
    """
    state = _require_state(service, state)
    service.update_task(state, task_id, payload.to_fields())
    return {"success": True}


@app.post("/api/tasks", response_model=CreatedResponse)
def create_task(
    payload: CreateTaskRequest,
    state: Optional[str] = None,
    service: TaskService = Depends(get_task_service),
):
    """
    Create a task in `state`. The id is generated from the clock and title.
    """
    state = _require_state(service, state)
    task = service.create_task(state, payload.to_fields())
    return {"id": task["id"], "success": True}


@app.delete("/api/tasks/{task_id}", response_model=SuccessResponse)
def delete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    service.delete_task(task_id)
    return {"success": True}


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def serve() -> None:
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Task API server running on http://localhost:%s (tasks: %s)", settings.port, settings.tasks_dir)
    uvicorn.run(app, host="127.0.0.1", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    serve()
