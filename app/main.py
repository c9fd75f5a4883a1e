from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.students.router import router as students_router
from app.api.v1.tenants.router import router as tenants_router
from app.core.logging import setup_logging


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="EduTrack Admin Backend")

    # CORS: the admin portal frontend calls this API from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(tenants_router)
    app.include_router(students_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
