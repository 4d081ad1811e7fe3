from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from context import ServiceContext
from server.routes import create_router


def create_app(ctx: ServiceContext) -> FastAPI:
    app = FastAPI(title="Boiler Watch", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    router = create_router(ctx)
    app.include_router(router)

    return app
