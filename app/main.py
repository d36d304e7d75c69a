"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.db.supabase_store import SupabaseStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.store = SupabaseStore.open()
    try:
        yield
    finally:
        app.state.store.close()


app = FastAPI(
    title="WMS SOP Assistant",
    description="Grounded SOP question answering and knowledge gap mining",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
