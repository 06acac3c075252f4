"""
Generación de identificadores del tracker.

- Tokens cortos (8 caracteres A-Z0-9) para project_uid y project_link_uid.
- UUID4 para el masked_id de cada visita.

Un link uid que un proyecto dejó de usar queda en project_link_uid_history y no
se vuelve a emitir nunca.

El generador no garantiza unicidad por sí mismo: quien lo usa tiene que
reintentar contra la base hasta obtener un valor libre (con un límite de intentos).
"""
import logging
import secrets
import string
import uuid
from typing import Callable, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..errors import GenerationCollision
from ..models.project import Project
from ..models.project_link_uid_history import ProjectLinkUidHistory

logger = logging.getLogger(__name__)

SHORT_TOKEN_ALPHABET = string.ascii_uppercase + string.digits
SHORT_TOKEN_LENGTH = 8
FIRST_PROJECT_NUMBER = 101

T = TypeVar("T")


def new_short_token(length: int = SHORT_TOKEN_LENGTH) -> str:
    """Código alfanumérico en mayúsculas, uniforme por carácter (ej: 'K7Q2ZP0A')."""
    return "".join(secrets.choice(SHORT_TOKEN_ALPHABET) for _ in range(length))


def new_visit_token() -> str:
    """UUID4 de 36 caracteres, usado como masked_id."""
    return str(uuid.uuid4())


def _max_attempts(max_attempts: int | None) -> int:
    return max_attempts if max_attempts is not None else get_settings().token_max_attempts


def generate_unique(
    generator: Callable[[], str],
    exists: Callable[[str], bool],
    max_attempts: int | None = None,
) -> str:
    """
    Genera valores hasta encontrar uno que `exists` no conozca.
    Lanza GenerationCollision si se agotan los intentos.
    """
    attempts = _max_attempts(max_attempts)
    for attempt in range(1, attempts + 1):
        value = generator()
        if not exists(value):
            return value
        logger.warning(f"Identificador ya usado, regenerando (intento {attempt}/{attempts})")
    raise GenerationCollision(f"No se pudo generar un identificador único tras {attempts} intentos")


def unique_short_token(db: Session, column, max_attempts: int | None = None) -> str:
    """
    Token corto que no existe todavía en `column` (ej: Project.project_uid).
    La restricción UNIQUE de la columna sigue siendo la garantía final al insertar.
    """
    def _exists(value: str) -> bool:
        return db.query(column).filter(column == value).first() is not None

    return generate_unique(new_short_token, _exists, max_attempts)


def link_uid_in_use(db: Session, value: str) -> bool:
    """True si el link uid es el vigente de algún proyecto o ya fue retirado alguna vez."""
    if db.query(Project.id).filter(Project.project_link_uid == value).first() is not None:
        return True
    return db.query(ProjectLinkUidHistory.id).filter(ProjectLinkUidHistory.link_uid == value).first() is not None


def unique_link_uid(db: Session, max_attempts: int | None = None) -> str:
    """Link uid nunca emitido antes (ni vigente ni retirado)."""
    return generate_unique(new_short_token, lambda value: link_uid_in_use(db, value), max_attempts)


def commit_with_unique_retry(
    db: Session,
    apply: Callable[[], T],
    max_attempts: int | None = None,
) -> T:
    """
    Ejecuta `apply()` (que agrega o modifica objetos en la sesión) y hace commit.

    Si la base rechaza el commit por una restricción UNIQUE (otro request ganó la
    carrera con el mismo token) se hace rollback y se vuelve a llamar a `apply()`,
    que tiene que generar tokens nuevos.
    """
    attempts = _max_attempts(max_attempts)
    for attempt in range(1, attempts + 1):
        obj = apply()
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Colisión de identificador al guardar, regenerando (intento {attempt}/{attempts})")
            continue
        db.refresh(obj)
        return obj
    raise GenerationCollision(f"No se pudo guardar con un identificador único tras {attempts} intentos")


def insert_with_unique_retry(
    db: Session,
    build: Callable[[], T],
    max_attempts: int | None = None,
) -> T:
    """Inserta el objeto que devuelve `build()`, reconstruyéndolo si choca con un UNIQUE."""
    def _apply() -> T:
        obj = build()
        db.add(obj)
        return obj

    return commit_with_unique_retry(db, _apply, max_attempts)


def next_project_number(db: Session) -> int:
    """Número de proyecto = máximo actual + 1 (el primero es 101)."""
    current = db.query(func.max(Project.project_number)).scalar()
    return (current or FIRST_PROJECT_NUMBER - 1) + 1
