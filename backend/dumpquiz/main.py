"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import init_db
from .routers import admin, auth, quizzes, session
from .services.document_store import ItemTooLargeError, StoreUnavailableError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle management for the application."""
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Exam Dump Quiz",
    description="Turns exam-dump PDFs into replayable quizzes with saved progress",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    return JSONResponse(status_code=503, content={"detail": "Storage is unavailable, please try again"})


@app.exception_handler(ItemTooLargeError)
async def item_too_large_handler(request: Request, exc: ItemTooLargeError):
    return JSONResponse(status_code=413, content={"detail": str(exc)})


app.include_router(auth.router)
app.include_router(quizzes.router)
app.include_router(session.router)
app.include_router(admin.router)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    from .config import PORT

    uvicorn.run(app, host="0.0.0.0", port=PORT)
