# slotpay/main.py
import os
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from .config import Settings, get_settings
from .database import init_db, make_engine, make_session_factory
from .errors import SlotpayError, ValidationError
from .services.payments import RazorpayGateway, UnconfiguredGateway

# Routers
from .routers.appointments import router as appointments_router
from .routers.payments import router as payments_router

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# LOGGING
# Controla niveles con variables de entorno: LOG_LEVEL, SQLA_LOG_LEVEL
# ──────────────────────────────────────────────────────────────────────────────
def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("sqlalchemy.engine").setLevel(
        getattr(logging, os.getenv("SQLA_LOG_LEVEL", "WARNING"), logging.WARNING)
    )


# ──────────────────────────────────────────────────────────────────────────────
# Errores → JSON
# Validación y conflicto llevan detalle; gateway/BD solo mensaje genérico
# (el detalle interno se agrega únicamente con ENV=dev).
# ──────────────────────────────────────────────────────────────────────────────
def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    expose_detail = settings.ENV == "dev"

    @app.exception_handler(SlotpayError)
    async def slotpay_error_handler(request: Request, exc: SlotpayError):
        content = {"message": exc.public_message}
        if isinstance(exc, ValidationError):
            content["errors"] = exc.fields
        elif exc.status_code >= 500:
            logger.error("%s en %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)
            if expose_detail:
                content["error"] = exc.detail
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Tipos incorrectos en el body o query: mismo formato 400 que ValidationError
        errors = {}
        for err in exc.errors():
            names = [p for p in err.get("loc", ()) if isinstance(p, str) and p not in ("body", "query")]
            field = names[-1] if names else "body"
            errors.setdefault(field, err.get("msg", "invalid value"))
        return JSONResponse(
            status_code=ValidationError.status_code,
            content={"message": ValidationError.public_message, "errors": errors},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Error no controlado en %s %s", request.method, request.url.path)
        content = {"message": "Something went wrong!"}
        if expose_detail:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)


def _default_gateway(settings: Settings):
    if settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET:
        return RazorpayGateway.from_settings(settings)
    logger.warning("Razorpay sin credenciales: /api/create-order y /api/payment no funcionarán.")
    return UnconfiguredGateway()


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# Todo se construye aquí una vez y se inyecta vía app.state (sin singletons de módulo).
#   uvicorn slotpay.main:create_app --factory
# ──────────────────────────────────────────────────────────────────────────────
def create_app(
    settings: Optional[Settings] = None,
    gateway=None,
    session_factory: Optional[sessionmaker] = None,
) -> FastAPI:
    configure_logging()
    settings = settings or get_settings()

    if session_factory is None:
        engine = make_engine(settings)
        init_db(engine)
        session_factory = make_session_factory(engine)

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.gateway = gateway or _default_gateway(settings)
    app.state.session_factory = session_factory
    app.state.scheduler = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app, settings)

    # Monta rutas
    app.include_router(payments_router)
    app.include_router(appointments_router)

    @app.on_event("startup")
    def on_startup():
        logger.info("Razorpay key mode: %s", settings.razorpay_key_mode)
        if settings.ENABLE_SCHEDULER:
            from .jobs.scheduler import start_scheduler
            app.state.scheduler = start_scheduler(session_factory, settings)
        logger.info("Startup completo: %s (%s)", settings.APP_NAME, settings.ENV)

    @app.on_event("shutdown")
    def on_shutdown():
        if app.state.scheduler is not None:
            app.state.scheduler.shutdown(wait=False)

    @app.get("/")
    def root():
        return {"ok": True, "app": settings.APP_NAME, "env": settings.ENV}

    return app
