"""
Normalización de las URLs de redirección que cargan los administradores.

Los proveedores de encuestas tienen que terminar SIEMPRE en /redirect/<status>
de este servidor para que podamos cerrar la sesión del respondente. Cualquier
URL que se pegue en el admin se reescribe a:

    {base}/redirect/{status}?<params originales>&mid={MASKED_ID}

conservando los parámetros extra y el valor de mid si ya venía cargado.
"""
import logging
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

from sqlalchemy.orm import Session

from ..models.click_session import OUTCOME_KINDS
from ..models.project import Project, REDIRECT_COLUMNS

logger = logging.getLogger(__name__)

MASKED_ID_PLACEHOLDER = "{MASKED_ID}"

# Los placeholders tienen que quedar literales para que replace_placeholders los encuentre
_QUERY_SAFE = "{}"


def fallback_redirect(outcome_kind: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/redirect/{outcome_kind}?mid={MASKED_ID_PLACEHOLDER}"


def default_redirects(base_url: str) -> dict:
    """Plantillas por defecto para un proyecto nuevo, una por resultado."""
    return {kind: fallback_redirect(kind, base_url) for kind in OUTCOME_KINDS}


def normalize_redirect(outcome_kind: str, raw_url: str | None, base_url: str) -> str:
    """
    Fuerza esquema, host y path de `raw_url` a los de este servidor.

    Nunca lanza: una entrada vacía o que no se puede parsear devuelve la URL por defecto.
    """
    fallback = fallback_redirect(outcome_kind, base_url)
    raw = (raw_url or "").strip()
    if not raw:
        return fallback

    try:
        base = urlsplit(base_url.rstrip("/"))
        parsed = urlsplit(urljoin(base_url.rstrip("/") + "/", raw))
        parsed.port  # valida el puerto (ValueError si no es numérico)

        query = parse_qsl(parsed.query, keep_blank_values=True)
        mid_values = [v for k, v in query if k == "mid"]
        if not mid_values or not mid_values[0]:
            others = [(k, v) for k, v in query if k != "mid"]
            query = others + [("mid", MASKED_ID_PLACEHOLDER)]

        normalized = parsed._replace(
            scheme=base.scheme,
            netloc=base.netloc,
            path=f"/redirect/{outcome_kind}",
            query=urlencode(query, safe=_QUERY_SAFE, quote_via=quote),
        )
        return urlunsplit(normalized)
    except ValueError as e:
        logger.warning(f"URL de redirección inválida para '{outcome_kind}' ({e}), usando la URL por defecto")
        return fallback


def renormalize_stored_redirects(db: Session, base_url: str) -> list:
    """
    Vuelve a normalizar las plantillas guardadas de todos los proyectos.
    Devuelve la lista de cambios (project_number, outcome, antes, después).
    No hace commit: eso lo decide quien llama.
    """
    changes = []
    for project in db.query(Project).order_by(Project.id).all():
        for kind, column in REDIRECT_COLUMNS.items():
            old_url = getattr(project, column)
            new_url = normalize_redirect(kind, old_url, base_url)
            if old_url != new_url:
                setattr(project, column, new_url)
                changes.append((project.project_number, kind, old_url, new_url))
    return changes
