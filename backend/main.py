import sys
import logging
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from studio.api.routes import router
from studio.api.metrics import router as metrics_router
from studio.core.config import get_settings
from studio.core.errors import ErrorCodes, get_error_response
from studio.core.logging import configure_logging
from studio.core.middleware import CorrelationIDMiddleware, TimeoutMiddleware, get_correlation_id

load_dotenv()

try:
    settings = get_settings()
except Exception as e:
    logging.basicConfig(level=logging.ERROR)
    logging.getLogger(__name__).error(f"Failed to load configuration: {e}")
    sys.exit(1)

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

app = FastAPI(
    title="Dataset Quality Studio API",
    description="Profiles, cleans and scores uploaded tabular datasets",
    version="1.0.0"
)

app.state.limiter = limiter
app.state.settings = settings


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    correlation_id = get_correlation_id(request)
    body = get_error_response(ErrorCodes.RATE_LIMIT_EXCEEDED)
    body["correlation_id"] = correlation_id
    return JSONResponse(
        status_code=429,
        content=body,
        headers={"Retry-After": "60", "X-Correlation-ID": correlation_id}
    )


app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# last added runs first: correlation ids wrap everything else
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID", "Content-Disposition"]
)
app.add_middleware(CorrelationIDMiddleware)

app.include_router(router, prefix="/api")
app.include_router(metrics_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "Dataset Quality Studio API is running"}


logger.info(f"CORS allowed origins: {settings.allowed_origins_list}")
