import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routes import progress_ws, songs
from services.api_client import AnalysisApiClient
from services.config import Settings
from services.orchestrator import ProcessingOrchestrator

# Load .env from backend dir
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    api = AnalysisApiClient(settings)
    app.state.orchestrator = ProcessingOrchestrator.from_settings(settings, api)
    logger.info(
        "Starting ZEZE processing API (server=%s, poll every %.1fs up to %d times)",
        settings.api_url,
        settings.poll_interval_seconds,
        settings.max_polls,
    )
    try:
        yield
    finally:
        logger.info("Shutting down ZEZE processing API")
        await api.aclose()


app = FastAPI(title="ZEZE Song Processing API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(songs.router, prefix="/api")
app.include_router(progress_ws.router, prefix="/api")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))
