# app/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.api.endpoints import booking, protected
from app.paygate import audit
from app.paygate.errors import ConfigError
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json"
)

app.include_router(booking.router, prefix=settings.API_PREFIX, tags=["booking"])
app.include_router(protected.router, prefix=settings.API_PREFIX, tags=["protected"])


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    """Misconfiguration is a server fault, never a payment problem."""
    logger.error(f"Configuration error on {request.method} {request.url.path}: {exc}")
    audit.log_config_error(
        client_ip=request.client.host if request.client else None,
        resource=request.url.path,
        error_message=str(exc),
    )
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.get("/", summary="Health Check", tags=["default"])
def read_root():
    """ Basic health check endpoint. """
    logger.info("Root endpoint '/' accessed.")
    return {"status": "ok", "message": f"Welcome to {settings.PROJECT_NAME}"}
