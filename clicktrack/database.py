# Configuración de base de datos usando SQLAlchemy.
#
# - DESARROLLO LOCAL: SQLite local (clicktrack.db) si DATABASE_URL no está configurada
# - PRODUCCIÓN: PostgreSQL (o la base que indique DATABASE_URL)
# - TESTS: DATABASE_URL=sqlite:// (en memoria, una sola conexión compartida)

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Cargar variables de entorno desde .env (solo en desarrollo local)
backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
load_dotenv(dotenv_path=env_path)

env_database_url = os.getenv("DATABASE_URL", "").strip()

if env_database_url:
    DATABASE_URL = env_database_url
    # Heroku/Railway todavía entregan el esquema viejo "postgres://"
    if DATABASE_URL.startswith("postgres://"):
        DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)
else:
    DATABASE_URL = "sqlite:///./clicktrack.db"

IS_SQLITE = DATABASE_URL.startswith("sqlite")
IS_MEMORY = IS_SQLITE and (DATABASE_URL in ("sqlite://", "sqlite:///:memory:"))

engine_kwargs = {}
if IS_SQLITE:
    engine_kwargs["connect_args"] = {"check_same_thread": False}
if IS_MEMORY:
    # Una base en memoria solo existe mientras viva su conexión
    engine_kwargs["poolclass"] = StaticPool

engine = create_engine(DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

logger.info(f"[DB] Usando {'SQLite' if IS_SQLITE else 'base externa'}: {engine.url.render_as_string(hide_password=True)}")


def get_db():
    """
    Dependencia para inyectar la sesión de DB en los endpoints de FastAPI.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
