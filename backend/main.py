import sys
import os

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

import asyncio
import logging
import traceback
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi.responses import JSONResponse
from fastapi.requests import Request
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Routers
from apis.capture_api import router as capture_router
from apis.scripts_api import router as scripts_router
from apis.services_api import router as services_router
from apis.run_test_api import router as run_test_router

from scraping.errors import BrowserConnectionError, ConfigurationError, SessionError
from scraping.traffic_filter import load_deny_list

_startup_logger = logging.getLogger("startup")


# -------------------------------------------------------
# Playwright Windows Fix
# -------------------------------------------------------
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())


# -------------------------------------------------------
# FASTAPI INITIALIZATION
# -------------------------------------------------------
@asynccontextmanager
async def _lifespan(app: FastAPI):
    deny_list = load_deny_list()
    _startup_logger.info(
        "Deny list loaded: %s prefixes, %s fragments, %s suffixes",
        len(deny_list.prefixes),
        len(deny_list.contains),
        len(deny_list.suffixes),
    )
    yield


app = FastAPI(title="Page-to-API Extractor", lifespan=_lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": "true",
}


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------------------------------------------
# EXCEPTION HANDLERS
# -------------------------------------------------------
@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=500, content={"detail": str(exc)}, headers=_CORS_HEADERS)


@app.exception_handler(SessionError)
async def session_exception_handler(request: Request, exc: SessionError):
    return JSONResponse(status_code=502, content={"detail": str(exc)}, headers=_CORS_HEADERS)


@app.exception_handler(BrowserConnectionError)
async def connection_exception_handler(request: Request, exc: BrowserConnectionError):
    return JSONResponse(status_code=504, content={"detail": str(exc)}, headers=_CORS_HEADERS)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    _startup_logger.error("Unhandled exception on %s %s", request.method, request.url.path)
    traceback.print_exc()

    return JSONResponse(
        status_code=500,
        content={"detail": str(exc)},
        headers=_CORS_HEADERS,
    )


# -------------------------------------------------------
# ROUTERS
# -------------------------------------------------------
app.include_router(capture_router)
app.include_router(scripts_router)
app.include_router(services_router)
app.include_router(run_test_router)


# -------------------------------------------------------
# MAIN SERVER
# -------------------------------------------------------
if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("browserbase").setLevel(logging.WARNING)
    logging.getLogger("watchfiles").setLevel(logging.ERROR)

    import uvicorn

    uvicorn.run("main:app", host="127.0.0.1", port=int(os.getenv("PORT", "8001")), reload=False, log_level="info")
