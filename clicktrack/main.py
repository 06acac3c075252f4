import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy import inspect

# Cargar variables de entorno desde .env (solo en desarrollo local)
backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
loaded = load_dotenv(dotenv_path=env_path)

from .config import get_settings, clear_settings_cache
from .database import Base, engine
from .errors import ClickTrackError
from .routers import entry, redirects, projects

# Limpiar cache de settings para asegurar que se recarguen las variables
clear_settings_cache()
app_settings = get_settings()

# Configurar logging
logging.basicConfig(level=getattr(logging, app_settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

if loaded:
    logger.info(f"Variables de entorno cargadas desde: {env_path}")

# Importar todos los modelos para que SQLAlchemy los registre antes de create_all()
from .models.project import Project  # noqa: F401
from .models.project_country_link import ProjectCountryLink  # noqa: F401
from .models.project_link_uid_history import ProjectLinkUidHistory  # noqa: F401
from .models.click_session import ClickSession  # noqa: F401

app = FastAPI(title=app_settings.app_name, version="0.1.0", redirect_slashes=False)

# Configurar CORS (solo lo usa el panel de administración; /entry y /redirect son navegación directa)
allowed_origins = [origin.strip() for origin in app_settings.cors_origin.split(",") if origin.strip()]
if app_settings.environment == "production" and not os.getenv("CORS_ORIGIN"):
    logger.warning("⚠️ CORS_ORIGIN no configurado en producción, permitiendo todos los orígenes")
    allowed_origins = ["*"]

logger.info(f"🌐 Orígenes CORS permitidos: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials="*" not in allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


def create_tables():
    """Crea las tablas en la base de datos si no existen."""
    try:
        expected_tables = list(Base.metadata.tables.keys())
        logger.info(f"Tablas esperadas: {', '.join(expected_tables)}")

        Base.metadata.create_all(bind=engine)

        existing_tables = inspect(engine).get_table_names()
        missing_tables = [t for t in expected_tables if t not in existing_tables]
        if missing_tables:
            logger.warning(f"⚠️  Tablas faltantes: {', '.join(missing_tables)}")
        else:
            logger.info("✅ Todas las tablas fueron creadas/verificadas exitosamente")

    except Exception as e:
        logger.error(f"❌ ERROR al crear tablas: {str(e)}", exc_info=True)
        raise


# Crear tablas al iniciar (no bloquear el inicio si falla)
try:
    create_tables()
except Exception as e:
    logger.error(f"❌ Error al crear tablas al iniciar: {str(e)}", exc_info=True)
    logger.warning("⚠️ El servidor continuará iniciando, pero algunas funcionalidades pueden no estar disponibles")


@app.exception_handler(ClickTrackError)
async def click_track_error_handler(request: Request, exc: ClickTrackError):
    """Errores de dominio -> texto plano con su código HTTP, sin cambios de estado."""
    if exc.status_code >= 500:
        logger.error(f"Error en {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.status_code} en {request.url.path}: {exc.message}")
    return PlainTextResponse(exc.message, status_code=exc.status_code)


# Include routers
app.include_router(entry.router)
app.include_router(redirects.router)
app.include_router(projects.router, prefix="/api")


@app.get("/", tags=["root"])
async def root():
    return {"message": f"Bienvenido a {app_settings.app_name}"}


@app.get("/api/health", tags=["health"])  # Health check para el panel / load balancer
async def health():
    return {"status": "ok", "server": "alive"}


@app.get("/favicon.ico", tags=["static"])
async def favicon():
    """Handle favicon.ico requests - return 204 No Content"""
    return Response(status_code=204)


def run():
    """
    Levanta el servidor con uvicorn (equivale a `uvicorn clicktrack.main:app`).
    HOST y PORT se leen del entorno (Railway define PORT).
    """
    import uvicorn

    uvicorn.run(
        "clicktrack.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=app_settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
