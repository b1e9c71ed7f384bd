import asyncio
from textwrap import dedent

import pydantic
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from loguru import logger

from projectflow_api.errors import handle_broad_exceptions
from projectflow_api.errors import handle_pydantic_validation_errors
from projectflow_api.errors import handle_request_validation_errors
from projectflow_api.errors import handle_workspace_errors
from projectflow_api.jobs.reaper import run_employee_reaper
from projectflow_api.jobs.reaper import run_project_reaper
from projectflow_api.monitoring.logger import configure_logger
from projectflow_api.monitoring.request_context import RequestContextMiddleware
from projectflow_api.routes.routes_account import ROUTER_ACCOUNT
from projectflow_api.routes.routes_activity import ROUTER_ACTIVITY
from projectflow_api.routes.routes_employee import ROUTER_EMPLOYEE
from projectflow_api.routes.routes_health import ROUTER_HEALTH
from projectflow_api.routes.routes_otp import ROUTER_OTP
from projectflow_api.routes.routes_project import ROUTER_PROJECT
from projectflow_api.routes.routes_task import ROUTER_TASK
from projectflow_api.routes.routes_team import ROUTER_TEAM
from projectflow_api.routes.routes_two_factor import ROUTER_TWO_FACTOR
from projectflow_api.settings import Settings
from projectflow_api.workspace.db.pool import WorkspaceDBPool
from projectflow_api.workspace.db.store import WorkspaceStore
from projectflow_api.workspace.exceptions import WorkspaceError
from projectflow_api.workspace.notifications.email_sender import EmailSender
from projectflow_api.workspace.storage.image_store import BlobImageStore


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Configuration is loaded directly from environment variables via pydantic-settings.
    - Azure Web App: Set variables as App Settings (Configuration > Application settings)
    - Local development: Use a .env file in the working directory
    """
    settings = settings or Settings()

    configure_logger(log_level=settings.log_level)

    logger.info(
        "Configuration loaded successfully",
        database_configured=bool(settings.database_connection_string),
        smtp_configured=bool(settings.smtp_host),
        image_storage_configured=bool(
            settings.azure_storage_sas_url
            or settings.azure_storage_connection_string
            or settings.azure_storage_account_url
        ),
        reaper_enabled=settings.enable_reaper,
    )

    app = FastAPI(
        title="ProjectFlow API",
        version="v1",
        description=dedent(
            """
        Multi-tenant project management backend.

        | Area | Notes |
        | --- | --- |
        | Accounts | owner registration, unified login, profile and settings |
        | Directory | employees with temporary passwords, teams |
        | Work | projects with phases, subtasks and comments; tasks |
        | Security | OTP password reset, TOTP two-factor, trusted devices |
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
        swagger_ui_parameters={
            "defaultModelsExpandDepth": -1,  # Hide schemas section
            "defaultModelExpandDepth": 1,  # Keep models collapsed if shown
        },
    )
    app.state.settings = settings
    app.state.store = None
    app.state.background_tasks = []
    app.state.email_sender = EmailSender(settings)
    app.state.image_store = BlobImageStore(settings)

    # Add request context middleware for tracking who/where requests come from
    app.add_middleware(RequestContextMiddleware)
    app.include_router(ROUTER_HEALTH, prefix="/api")
    app.include_router(ROUTER_ACCOUNT, prefix="/api")
    app.include_router(ROUTER_EMPLOYEE, prefix="/api")
    app.include_router(ROUTER_TEAM, prefix="/api")
    app.include_router(ROUTER_PROJECT, prefix="/api")
    app.include_router(ROUTER_TASK, prefix="/api")
    app.include_router(ROUTER_OTP, prefix="/api")
    app.include_router(ROUTER_TWO_FACTOR, prefix="/api")
    app.include_router(ROUTER_ACTIVITY, prefix="/api")

    if settings.database_connection_string:

        @app.on_event("startup")
        async def startup_workspace():
            """Initialize the workspace database and start the reaper loops."""
            pool = WorkspaceDBPool(settings.database_connection_string)
            await pool.initialize()
            app.state.db_pool = pool
            app.state.store = WorkspaceStore.from_pool(pool)
            logger.success("Workspace database initialized")

            if settings.enable_reaper:
                app.state.background_tasks = [
                    asyncio.create_task(run_project_reaper(app.state.store, app.state.image_store, settings)),
                    asyncio.create_task(run_employee_reaper(app.state.store, settings)),
                ]
                logger.success("Reaper tasks started")

        @app.on_event("shutdown")
        async def shutdown_workspace():
            """Stop the reaper loops and close database connections."""
            for task in app.state.background_tasks:
                task.cancel()
            await asyncio.gather(*app.state.background_tasks, return_exceptions=True)
            app.state.background_tasks = []

            if getattr(app.state, "db_pool", None) is not None:
                await app.state.db_pool.close()
                logger.info("Workspace database closed")

    else:
        logger.warning("DATABASE_CONNECTION_STRING not set - data routes will answer 503")

    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=RequestValidationError,
        handler=handle_request_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=WorkspaceError,
        handler=handle_workspace_errors,
    )

    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name

