from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .routes.routes_assistant import router as assistant_router
from .routes.routes_relay import router as relay_router
from .services.relay import RelayHub


def create_app() -> FastAPI:
    hub = RelayHub()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        try:
            yield
        finally:
            await hub.close()

    app = FastAPI(title="codezero", version="0.1.0", lifespan=lifespan)
    # One in-memory relay per process; peers in different processes share it over /api/relay/ws.
    app.state.relay_hub = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(assistant_router)
    app.include_router(relay_router)

    @app.get("/")
    def root():
        return {"ok": True, "service": "codezero"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "codezero.main:app",
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
