from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
import time
import logging

from app.core.exceptions import SaleError

logger = logging.getLogger(__name__)

def setup_middleware(app: FastAPI):
    """Configure all middleware for the application"""

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure properly for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.4f}s"
        )

        return response

def setup_exception_handlers(app: FastAPI):
    """Serializar errores de dominio y de validación con un formato único"""

    @app.exception_handler(SaleError)
    async def sale_error_handler(request: Request, exc: SaleError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error_kind} en {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.error_kind} en {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder({"success": False, **exc.to_dict()})
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=jsonable_encoder({
                "success": False,
                "errorKind": "InvalidRequest",
                "message": "Datos de la solicitud inválidos",
                "details": {"errors": exc.errors()}
            })
        )
