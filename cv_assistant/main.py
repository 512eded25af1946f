import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi import _rate_limit_exceeded_handler
import sentry_sdk

from cv_assistant.api.v1.health import router as health_router
from cv_assistant.api.v1.extraction import router as extraction_router
from cv_assistant.api.v1.generation import router as generation_router
from cv_assistant.api.v1.sessions import router as sessions_router
from cv_assistant.core.cors import cors_allow_origin_regex, cors_allowed_origins
from cv_assistant.core.rate_limit import limiter
from cv_assistant.core.config import settings
from cv_assistant.core.security import require_api_key
from dotenv import load_dotenv
from cv_assistant.core.lifespan import lifespan

load_dotenv()
logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s %(message)s")
if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn)

app = FastAPI(title="CV Assistant API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allowed_origins(),
    allow_origin_regex=cors_allow_origin_regex(),
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

protected = [Depends(require_api_key)]
app.include_router(health_router, prefix="/v1", tags=["Health"])
app.include_router(extraction_router, prefix="/v1", tags=["Extraction"], dependencies=protected)
app.include_router(generation_router, prefix="/v1", tags=["Generation"], dependencies=protected)
app.include_router(sessions_router, prefix="/v1", tags=["Sessions"], dependencies=protected)
