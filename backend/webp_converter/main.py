"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from webp_converter.api.routes import router
from webp_converter.config import CORS_ORIGINS, WEBP_QUALITY, logger as config_logger

logging.getLogger("uvicorn").setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config_logger.info("Converter API started (WebP quality %s)", WEBP_QUALITY)
    yield
    config_logger.info("Converter API shutting down")


app = FastAPI(
    title="WebP Converter API",
    description="Convert PNG and JPEG images to WebP and bundle results as ZIP archives.",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Errors go out as {"message": ...} so clients read one field."""
    return JSONResponse({"message": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        status_code=400,
    )


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    from webp_converter.config import HOST, PORT
    uvicorn.run("webp_converter.main:app", host=HOST, port=PORT, reload=True)
