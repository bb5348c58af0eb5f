from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studio_crm.core.app_logger import setup_logging
from studio_crm.api.v1.attendance.router import router as attendance_router
from studio_crm.api.v1.enrollments.router import router as enrollments_router
from studio_crm.api.v1.groups.router import router as groups_router
from studio_crm.api.v1.schedules.router import router as schedules_router
from studio_crm.api.v1.sessions.router import router as sessions_router


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Studio CRM")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(groups_router)
    app.include_router(schedules_router)
    app.include_router(sessions_router)
    app.include_router(enrollments_router)
    app.include_router(attendance_router)

    return app


app = create_app()
