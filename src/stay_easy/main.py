# stay_easy/main.py
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stay_easy import __version__
from stay_easy.config import Config
from stay_easy.logger import setup_logger
from stay_easy.reservations import api, webhook
from stay_easy.reservations.database import init_db
from stay_easy.reservations.errors import BookingError

# ------------------------- Logging setup -------------------------
logger = setup_logger("stay_easy")


# ------------------------- Error handlers -------------------------
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("%s %s invalid payload: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


def create_app(init_tables: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if init_tables:
            init_db()
        logger.info("Stay Easy reservation engine v%s started", __version__)
        yield
        logger.info("Application shutdown")

    app = FastAPI(title="Stay Easy Reservation Engine", version=__version__, lifespan=lifespan)

    # ------------------------- CORS -------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(api.router)
    app.include_router(webhook.router)

    @app.get("/api/health", tags=["health"])
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("stay_easy.main:app", host="0.0.0.0", port=int(os.environ.get("PORT", Config.PORT)))
