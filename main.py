# main.py
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

# Internal imports
from application.orchestrators.refactoring_host import HostConfig, RefactoringHost
from application.services.task_generator import TaskGenerationConfig, TaskGenerator
from application.services.transform_pipeline import TransformPipeline
from domain.errors import RefactorError, UnsupportedIntentError
from domain.models.policy_schema import resolve_policy
from domain.models.task_intent import intent_from_dict
from domain.models.transform import TransformContext
from infrastructure.producers.static_producer import StaticFindingProducer
from infrastructure.storage.postgres_run_store import PostgresRunStore
from infrastructure.storage.run_store import FileRunStore, RunStore
from infrastructure.transforms.registry import TransformRegistry
from infrastructure.web.error_handlers import ERROR_STATUS, refactor_error_handler
from infrastructure.web.policy_api import builtin_policy, router as policy_router
from shared.config import AppConfig
from shared.logging import logger, setup_logging

# Global application state
app_state = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""

    config = AppConfig.from_env()
    setup_logging(level=config.log_level, json_logs=config.json_logs)

    logger.info("Starting refactoring task service",
               transform_strategy=config.transform_strategy,
               approval_policy=config.approval_policy)

    try:
        app_state["config"] = config
        app_state["registries"] = {
            "syntax": TransformRegistry.syntax_based(),
            "text": TransformRegistry.text_based(),
        }

        if config.database_url:
            store = PostgresRunStore(config.database_url)
            await store.initialize()
        else:
            store = FileRunStore(config.run_store_dir)
        app_state["run_store"] = store

        logger.info("Application initialized successfully", run_store=store.name)

    except Exception as e:
        logger.error("Failed to initialize application", error=str(e))
        raise

    yield

    logger.info("Shutting down refactoring task service")

    store = app_state.get("run_store")
    if isinstance(store, PostgresRunStore):
        await store.close()


app = FastAPI(
    title="Refactoring Task Pipeline",
    description="Turns code findings into approved, deterministic source transforms",
    version="1.0.0",
    lifespan=lifespan
)
app.add_exception_handler(RefactorError, refactor_error_handler)


# Request/Response models

class PreviewRequest(BaseModel):
    file_path: str = Field(..., min_length=1)
    source: str
    intents: List[Dict[str, Any]] = Field(..., min_length=1)
    strategy: Optional[str] = None
    order_by_dependency: bool = False


class PreviewResponse(BaseModel):
    success: bool
    transformed_source: str
    diff: str
    lines_changed: int
    applied: List[str]
    warnings: List[str] = []
    error: Optional[Dict[str, Any]] = None


class RunRequest(BaseModel):
    project_path: str = Field(..., min_length=1)
    sources: Dict[str, str]
    findings: List[Dict[str, Any]] = []
    policy: Optional[str] = None
    strategy: Optional[str] = None
    apply_changes: bool = False
    max_tasks: Optional[int] = Field(default=None, ge=0, le=100)
    minimum_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class RunTaskSummary(BaseModel):
    task_id: str
    title: str
    intent: str
    confidence: float
    status: str
    decision: str
    reason: Optional[str] = None
    lines_changed: int = 0
    warnings: List[str] = []


class RunResponse(BaseModel):
    run_id: str
    outcome: str
    findings: int
    tasks_proposed: int
    tasks_processed: int
    tasks_succeeded: int
    tasks: List[RunTaskSummary]
    sources: Dict[str, str]
    diff: str


# Dependency injection

async def get_config() -> AppConfig:
    return app_state["config"]


async def get_run_store() -> RunStore:
    return app_state["run_store"]


def _registry(strategy: Optional[str]) -> TransformRegistry:
    config: AppConfig = app_state["config"]
    key = (strategy or config.transform_strategy).strip().lower()
    registry = app_state["registries"].get(key)
    if registry is None:
        raise HTTPException(status_code=422, detail=f"Unknown transform strategy: {key}")
    return registry


# Main API endpoints

@app.get("/health")
async def health_check(store: RunStore = Depends(get_run_store), config: AppConfig = Depends(get_config)):
    """System health check"""

    try:
        await store.list_recent(limit=1)
        return {
            "status": "healthy",
            "run_store": store.name,
            "transform_strategy": config.transform_strategy,
            "approval_policy": config.approval_policy,
        }
    except RefactorError as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(status_code=503, content={
            "status": "unhealthy",
            "run_store": store.name,
            "error": e.to_dict(),
        })


@app.post("/transforms/preview", response_model=PreviewResponse)
async def preview_transform(request: PreviewRequest):
    """Apply intents to a submitted source buffer without persisting anything"""

    intents = []
    for item in request.intents:
        try:
            intents.append(intent_from_dict(item))
        except (TypeError, ValueError) as e:
            raise UnsupportedIntentError(str(item.get("kind")), str(e)) from e

    pipeline = TransformPipeline(_registry(request.strategy))
    result = pipeline.execute(
        intents,
        request.source,
        TransformContext(file_path=request.file_path),
        order_by_dependency_first=request.order_by_dependency,
    )

    response = PreviewResponse(
        success=result.success,
        transformed_source=result.transformed_source,
        diff=result.combined_diff if result.success else "",
        lines_changed=result.total_lines_changed if result.success else 0,
        applied=[record.intent.kind for record in result.applied],
        warnings=list(result.warnings),
        error=result.error,
    )
    if not result.success:
        return JSONResponse(
            status_code=ERROR_STATUS.get(result.error["kind"], 400),
            content=response.model_dump(),
        )
    return response


@app.post("/runs", response_model=RunResponse)
async def start_run(
    request: RunRequest,
    store: RunStore = Depends(get_run_store),
    config: AppConfig = Depends(get_config)
):
    """Run the full analyze -> approve -> execute cycle and persist the audit record"""

    try:
        producer = StaticFindingProducer.from_dicts(request.findings)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid finding: {e}")

    # Callers pick among built-ins; a policy file can only come from server config
    policy = builtin_policy(request.policy) if request.policy else resolve_policy(config.approval_policy)
    max_tasks = request.max_tasks if request.max_tasks is not None else config.max_tasks_per_run
    task_config = TaskGenerationConfig(
        minimum_confidence=(
            request.minimum_confidence if request.minimum_confidence is not None
            else config.minimum_confidence
        ),
        max_tasks_per_run=max_tasks,
    )

    host = RefactoringHost(
        project_root=request.project_path,
        config=HostConfig(
            task_config=task_config,
            max_tasks_per_run=max_tasks,
            apply_changes=request.apply_changes,
        ),
        generator=TaskGenerator(task_config),
        pipeline=TransformPipeline(_registry(request.strategy)),
        producers=[producer],
        policy=policy,
        store=store,
    )
    result = await host.run(request.sources)

    tasks = []
    for task_id, decision in result.decisions.items():
        task = decision.task
        transform = result.results.get(task_id)
        tasks.append(RunTaskSummary(
            task_id=task_id,
            title=task.title,
            intent=task.intent.kind,
            confidence=task.confidence,
            status=task.status.value,
            decision=decision.decision.value,
            reason=decision.reason,
            lines_changed=transform.lines_changed if transform else 0,
            warnings=list(transform.warnings) if transform else [],
        ))

    return RunResponse(
        run_id=result.run_id,
        outcome=result.outcome.value,
        findings=len(result.findings),
        tasks_proposed=result.tasks_proposed,
        tasks_processed=result.tasks_processed,
        tasks_succeeded=result.tasks_succeeded,
        tasks=tasks,
        sources=result.sources,
        diff="\n\n".join(r.diff for r in result.results.values() if r.success and r.diff),
    )


@app.get("/runs/{run_id}")
async def get_run(run_id: str, store: RunStore = Depends(get_run_store)):
    """Get the stored audit record of one run"""
    run = await store.load(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return run.to_dict()


@app.get("/runs")
async def list_runs(
    project: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=200),
    store: RunStore = Depends(get_run_store)
):
    """List runs, newest first, optionally for one project"""
    if project:
        runs = await store.list_for_project(project, limit=limit)
    else:
        runs = await store.list_recent(limit=limit)

    return [
        {
            "id": run.id,
            "project_path": run.project_path,
            "outcome": run.outcome.value,
            "started_at": run.started_at.isoformat(),
            "completed_at": run.completed_at.isoformat() if run.completed_at else None,
            "tasks": len(run.tasks),
        }
        for run in runs
    ]


@app.delete("/runs/{run_id}")
async def delete_run(run_id: str, store: RunStore = Depends(get_run_store)):
    """Delete a stored run"""
    if not await store.delete(run_id):
        raise HTTPException(status_code=404, detail="Run not found")
    return {"deleted": run_id}


@app.get("/")
async def root():
    """API information"""
    return {
        "name": "Refactoring Task Pipeline",
        "version": "1.0.0",
        "endpoints": {
            "health_check": "GET /health",
            "preview_transform": "POST /transforms/preview",
            "start_run": "POST /runs",
            "get_run": "GET /runs/{run_id}",
            "list_runs": "GET /runs?project=&limit=",
            "delete_run": "DELETE /runs/{run_id}",
            "policies": "GET /policies",
        },
    }


app.include_router(policy_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
