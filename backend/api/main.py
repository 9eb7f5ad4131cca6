from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from typing import Optional
import logging

from api.config import settings
from api.logging_setup import configure_logging
from lotparser.config import get_site_summary
from lotparser.manager import ListingOrchestrator, build_orchestrator

configure_logging(settings)

logger = logging.getLogger(__name__)

# Built on first use; the cookie jars it points at are shared across requests
_orchestrator: Optional[ListingOrchestrator] = None


def get_orchestrator() -> ListingOrchestrator:
    """Dependency returning the process-wide orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(settings)
    return _orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("Lot Parser Backend Starting Up")
    logger.info("=" * 60)
    logger.info(f"Log file: {settings.log_file}")
    logger.info(f"Cookie dir: {settings.cookie_dir}")
    logger.info(f"Minter: {settings.minter_interpreter} ({settings.minter_script_dir})")
    settings.cookie_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Backend ready to accept requests")

    yield  # Application runs here

    if _orchestrator is not None and _orchestrator.sink is not None:
        _orchestrator.sink.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Lot Parser API",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    """Return empty response for favicon requests"""
    return Response(status_code=204)


# API Endpoints

@app.get("/")
async def root():
    return {"message": "Lot Parser API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/sites")
async def list_sites():
    """List supported auction sites"""
    return {"sites": get_site_summary()}


@app.get("/api/parse")
def parse_listing(
    url: str = Query(..., description="Copart or IAAI listing URL"),
    orchestrator: ListingOrchestrator = Depends(get_orchestrator),
):
    """
    Parse a listing URL into year, location, branch, engine and fuel.

    Always answers 200; failures are reported in the body with error=1.
    Runs in the threadpool since the pipeline blocks on HTTP and the minter.
    """
    outcome = orchestrator.run(url)
    return outcome.to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
