# main.py

from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import List, Optional
import asyncio
import logging

from crudbasico.config import Settings
from crudbasico.database import TaskStore
from crudbasico.exceptions import NotFound, StoreError, TaskError
from crudbasico.logger import setup_logger
from crudbasico.normalize import (
    list_filters,
    normalize_description,
    normalize_priority,
    normalize_status,
    normalize_title,
    parse_due_date,
    validate_task_id,
)
from crudbasico.schemas import (
    ErrorResponse,
    Health,
    Task,
    TaskCreate,
    TaskStats,
    TaskStatusUpdate,
    TaskUpdate,
)

logger = logging.getLogger("crudbasico.api")

router = APIRouter(
    prefix="/api/tasks",
    responses={
        400: {"model": ErrorResponse, "description": "Missing title or malformed id"},
        404: {"model": ErrorResponse, "description": "Task not found"},
        500: {"model": ErrorResponse, "description": "Store failure"},
    },
)


def get_store(request: Request) -> TaskStore:
    return request.app.state.store


async def run_store(request: Request, func, *args, **kwargs):
    """Run a blocking store call in the app's thread pool executor."""
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(request.app.state.executor, partial(func, *args, **kwargs))
    except StoreError:
        logger.exception("Store operation %s failed", getattr(func, "__name__", func))
        raise
    except TaskError:
        raise
    except Exception as e:
        logger.exception("Store operation %s failed", getattr(func, "__name__", func))
        raise StoreError(str(e)) from e


def create_fields(payload: Optional[TaskCreate]) -> dict:
    payload = payload or TaskCreate()
    return {
        "title": normalize_title(payload.title),
        "description": normalize_description(payload.description),
        "priority": normalize_priority(payload.priority),
        "status": normalize_status(payload.status),
        "due_date": parse_due_date(payload.dueDate),
    }


def update_fields(payload: Optional[TaskUpdate]) -> dict:
    """Normalize only the keys the client actually sent."""
    if payload is None:
        return {}
    sent = payload.model_fields_set
    updates = {}
    if "title" in sent:
        updates["title"] = normalize_title(payload.title)
    if "description" in sent:
        updates["description"] = normalize_description(payload.description)
    if "priority" in sent:
        updates["priority"] = normalize_priority(payload.priority)
    if "status" in sent:
        updates["status"] = normalize_status(payload.status)
    if "dueDate" in sent:
        updates["due_date"] = parse_due_date(payload.dueDate)
    return updates


# LIST - GET /api/tasks?search=&status=&priority=
@router.get("", response_model=List[Task])
async def list_tasks(
    request: Request,
    search: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    store: TaskStore = Depends(get_store),
):
    filters = list_filters(search, status, priority)
    return await run_store(request, store.find, **filters)


# STATS - GET /api/tasks/stats
@router.get("/stats", response_model=TaskStats)
async def get_stats(request: Request, store: TaskStore = Depends(get_store)):
    # Four independent counts; they are not a consistent snapshot.
    total, completed, pending, cancelled = await asyncio.gather(
        run_store(request, store.count),
        run_store(request, store.count, status="completed"),
        run_store(request, store.count, status="pending"),
        run_store(request, store.count, status="cancelled"),
    )
    return TaskStats(total=total, completed=completed, pending=pending, cancelled=cancelled)


# READ - GET /api/tasks/{task_id}
@router.get("/{task_id}", response_model=Task)
async def get_task(task_id: str, request: Request, store: TaskStore = Depends(get_store)):
    validate_task_id(task_id)
    task = await run_store(request, store.find_by_id, task_id)
    if task is None:
        raise NotFound()
    return task


# CREATE - POST /api/tasks
@router.post("", response_model=Task, status_code=201)
async def create_task(
    request: Request,
    payload: Optional[TaskCreate] = Body(None),
    store: TaskStore = Depends(get_store),
):
    fields = create_fields(payload)
    return await run_store(request, store.create, fields)


# UPDATE - PUT /api/tasks/{task_id}
@router.put("/{task_id}", response_model=Task)
async def update_task(
    task_id: str,
    request: Request,
    payload: Optional[TaskUpdate] = Body(None),
    store: TaskStore = Depends(get_store),
):
    validate_task_id(task_id)
    updates = update_fields(payload)
    task = await run_store(request, store.update_by_id, task_id, updates)
    if task is None:
        raise NotFound()
    return task


# UPDATE STATUS - PUT /api/tasks/{task_id}/status
@router.put("/{task_id}/status", response_model=Task)
async def update_task_status(
    task_id: str,
    request: Request,
    payload: Optional[TaskStatusUpdate] = Body(None),
    store: TaskStore = Depends(get_store),
):
    validate_task_id(task_id)
    status = normalize_status(payload.status if payload else None)
    task = await run_store(request, store.update_by_id, task_id, {"status": status})
    if task is None:
        raise NotFound()
    return task


# DELETE - DELETE /api/tasks/{task_id}
@router.delete("/{task_id}", status_code=204, response_class=Response)
async def delete_task(task_id: str, request: Request, store: TaskStore = Depends(get_store)):
    validate_task_id(task_id)
    deleted = await run_store(request, store.delete_by_id, task_id)
    if not deleted:
        raise NotFound()
    return Response(status_code=204)


async def healthz(request: Request) -> Health:
    store = request.app.state.store
    connected = False
    if store is not None:
        connected = await run_store(request, store.ping)
    return Health(
        status="OK",
        db="connected" if connected else "disconnected",
        dbName=request.app.state.settings.dataset_id,
    )


async def task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Cuerpo de la petición inválido"})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown paths and unsupported methods both read as a missing endpoint.
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content={"error": "Endpoint no encontrado"})
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def reject_unknown_origins(request: Request, call_next):
    """Refuse cross-origin requests whose Origin is not on the allow-list."""
    allowed = request.app.state.settings.allowed_origins
    origin = request.headers.get("origin")
    if origin and allowed and origin not in allowed:
        return JSONResponse(status_code=403, content={"error": "Not allowed by CORS"})
    return await call_next(request)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    if app.state.store is None:
        try:
            store = TaskStore(settings)
            store.ensure_schema()
        except (ValueError, ConnectionError, StoreError) as e:
            logger.critical("Could not connect to BigQuery: %s", e)
            raise
        app.state.store = store
        logger.info("Connected to BigQuery. Table: %s", store.get_full_table_id())
    yield
    app.state.executor.shutdown(wait=True)


def create_app(settings: Optional[Settings] = None, store=None) -> FastAPI:
    """Build the API. When ``store`` is None a BigQuery TaskStore is opened at startup."""
    settings = settings or Settings.from_env()
    setup_logger(settings.log_level)

    app = FastAPI(title="Todo API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    # Thread pool executor for running synchronous BigQuery operations
    app.state.executor = ThreadPoolExecutor(max_workers=settings.store_workers)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins or ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    # Added after CORSMiddleware so it runs first, preflights included.
    app.middleware("http")(reject_unknown_origins)

    app.include_router(router)
    app.add_api_route("/healthz", healthz, methods=["GET"], response_model=Health)

    app.add_exception_handler(TaskError, task_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
