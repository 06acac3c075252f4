from dataclasses import dataclass
from typing import Optional
import logging

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db

logger = logging.getLogger(__name__)

EDITOR_ROLES = ("admin", "manager")


# ============================================================================
# DEPENDENCIAS - Identidad del usuario (la setea el proxy de autenticación)
# ============================================================================

@dataclass
class Principal:
    email: Optional[str] = None
    role: Optional[str] = None


def is_editor(principal: Optional[Principal]) -> bool:
    """Solo admin y manager pueden editar proyectos, links y redirecciones."""
    return bool(principal and principal.role in EDITOR_ROLES)


def get_principal(
    x_user_email: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[Principal]:
    """
    Obtiene el usuario autenticado de los headers X-User-Email / X-User-Role.
    Retorna None si no hay usuario logueado.
    """
    if not x_user_email and not x_user_role:
        return None
    return Principal(
        email=x_user_email.strip().lower() if x_user_email else None,
        role=x_user_role.strip().lower() if x_user_role else None,
    )


def get_base_url(request: Request) -> str:
    """URL pública de este servidor; PUBLIC_BASE_URL tiene prioridad sobre el Host del request."""
    configured = get_settings().public_base_url
    if configured:
        return configured
    return str(request.base_url).rstrip("/")


@dataclass
class RequestContext:
    """Todo lo que un endpoint necesita del request, pasado explícitamente."""
    db: Session
    principal: Optional[Principal]
    base_url: str

    @property
    def can_edit(self) -> bool:
        return is_editor(self.principal)


def get_request_context(
    request: Request,
    principal: Optional[Principal] = Depends(get_principal),
    db: Session = Depends(get_db),
) -> RequestContext:
    return RequestContext(db=db, principal=principal, base_url=get_base_url(request))


def require_editor(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Versión estricta para endpoints de escritura."""
    if not ctx.can_edit:
        logger.info(f"Acceso de edición denegado a {ctx.principal.email if ctx.principal else 'anónimo'}")
        raise HTTPException(status_code=403, detail="Forbidden")
    return ctx


# ============================================================================
# Datos del visitante (best-effort)
# ============================================================================

def get_client_ip(request: Request) -> str:
    """
    IP del visitante: primer IP de X-Forwarded-For (detrás de proxy), si no la del socket.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host or ""
    return ""


def get_client_country(request: Request) -> str:
    """País del visitante según el header del CDN; 'Unknown' si no viene."""
    header = get_settings().geo_country_header
    country = (request.headers.get(header) or "").strip() if header else ""
    return country or "Unknown"
