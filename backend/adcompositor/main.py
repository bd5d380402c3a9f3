from contextlib import asynccontextmanager
from pathlib import Path
import os

from dotenv import load_dotenv
from fastapi import FastAPI

# Load backend/.env before modules that read env at import time.
_backend_dir = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_backend_dir / ".env", override=False)

from adcompositor.core.logger import setup_logger

from adcompositor.api import composite

logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    cutout_url = (os.getenv("ADC_CUTOUT_URL") or "").strip()
    logger.info("Starting ad compositor...")
    logger.info(f"Cutout service: {'configured' if cutout_url else 'default local endpoint'}")

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="Ad Compositor",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(composite.router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("adcompositor.main:app", host="0.0.0.0", port=8000, reload=True)
