from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routers import auth, blobs, chats, files, messages
from .db import init_db
from docuchat.utils.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup initiated")
    init_db()
    yield
    logger.info("Application shutdown")


app = FastAPI(title="DocuChat API", lifespan=lifespan)
logger.info("FastAPI app instance created")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Routers
app.include_router(auth.router)
app.include_router(chats.router)
app.include_router(files.router)
app.include_router(messages.router)
app.include_router(blobs.router)
logger.info("Routers registered: auth, chats, files, messages, blobs")


@app.get("/")
def health():
    logger.info("Health check / endpoint called")
    return {"status": "DocuChat API server running"}


# Global exception handler (nice for logging unexpected errors)
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on path {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
