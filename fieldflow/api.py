"""HTTP entry point for starting and inspecting workflow executions."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import FieldflowConfig, configure_logging, load_config
from .dispatch import ExecutionCoordinator
from .errors import WorkflowError
from .execute import describe_error

logger = logging.getLogger(__name__)

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


class ExecuteWorkflowRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workflow_id: str = Field(alias="workflowId")
    tenant_id: str = Field(alias="tenantId")
    trigger_data: Dict[str, Any] = Field(default_factory=dict, alias="triggerData")
    test_mode: bool = Field(default=False, alias="testMode")

    @field_validator("trigger_data", mode="before")
    @classmethod
    def _null_trigger_data(cls, v: Any) -> Any:
        return {} if v is None else v


class TriggerWorkflowRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    trigger_type: str = Field(alias="triggerType")
    tenant_id: str = Field(alias="tenantId")
    trigger_data: Dict[str, Any] = Field(default_factory=dict, alias="triggerData")

    @field_validator("trigger_data", mode="before")
    @classmethod
    def _null_trigger_data(cls, v: Any) -> Any:
        return {} if v is None else v


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    logger.error(f"Workflow execution error: {exc}")
    return _error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.error(f"Invalid request body for {request.url.path}: {exc}")
    return _error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app(
    coordinator: Optional[ExecutionCoordinator] = None,
    config: Optional[FieldflowConfig] = None,
) -> FastAPI:
    """Build the application.

    When ``coordinator`` is omitted one is created from ``config`` on startup.
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(config.log_level)
        if getattr(app.state, "coordinator", None) is None:
            app.state.coordinator = ExecutionCoordinator(config=config)
        yield

    app = FastAPI(title="fieldflow", version="0.1.0", lifespan=lifespan)
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["*"],
        allow_headers=CORS_HEADERS,
    )
    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)

    @app.options("/execute-workflow", include_in_schema=False)
    async def execute_workflow_preflight() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.post("/execute-workflow")
    async def execute_workflow(request: Request) -> JSONResponse:
        body = ExecuteWorkflowRequest.model_validate(await _json_body(request))
        try:
            execution_id = await request.app.state.coordinator.start_execution(
                body.workflow_id,
                body.trigger_data,
                body.tenant_id,
                test_mode=body.test_mode,
            )
        except WorkflowError:
            raise
        except Exception as e:
            logger.exception(f"Failed to start workflow {body.workflow_id}")
            return _error(describe_error(e), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return JSONResponse(
            content={
                "success": True,
                "executionId": execution_id,
                "message": "Test execution started"
                if body.test_mode
                else "Workflow execution started",
            }
        )

    @app.post("/trigger-workflow")
    async def trigger_workflow(request: Request) -> JSONResponse:
        body = TriggerWorkflowRequest.model_validate(await _json_body(request))
        try:
            execution_ids = await request.app.state.coordinator.dispatch_trigger(
                body.trigger_type, body.trigger_data, body.tenant_id
            )
        except WorkflowError:
            raise
        except Exception as e:
            logger.exception(f"Failed to dispatch trigger {body.trigger_type}")
            return _error(describe_error(e), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return JSONResponse(content={"success": True, "executionIds": execution_ids})

    @app.get("/executions/{execution_id}")
    async def get_execution(execution_id: str, request: Request) -> JSONResponse:
        repository = request.app.state.coordinator.repository
        execution = await repository.get_execution(execution_id)
        if execution is None:
            return _error(
                f"Execution not found: {execution_id}", status.HTTP_404_NOT_FOUND
            )
        logs = await repository.get_logs(execution_id)
        return JSONResponse(
            content={
                **execution.model_dump(mode="json"),
                "logs": [log.model_dump(mode="json") for log in logs],
            }
        )

    @app.get("/health", include_in_schema=False)
    async def health_check() -> JSONResponse:
        return JSONResponse(content={"status": "ok"})

    return app


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise WorkflowError("Request body must be valid JSON") from None
