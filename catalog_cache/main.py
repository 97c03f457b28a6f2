import logging

from fastapi import FastAPI

from catalog_cache.core.dependencies import get_config, get_refresh_queue

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Nix catalog cache",
    version="0.1.0",
    description="Keeps the local Nix package catalog cache in sync with upstream.",
)


@app.on_event("startup")
async def startup_event() -> None:
    """
    Resolve the configuration once and start the refresh worker for its
    cache directory.
    """
    config = get_config()
    logger.info(f"Using cache directory {config.cache_dir}")
    get_refresh_queue().start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await get_refresh_queue().stop()


@app.get("/health")
async def health() -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok"}


from catalog_cache.api.cache import router as cache_router

app.include_router(cache_router, tags=["cache"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "catalog_cache.main:app",
        host="127.0.0.1",
        port=8000,
    )
