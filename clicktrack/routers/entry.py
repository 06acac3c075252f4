"""
Router del link de entrada que se reparte a los paneles:

    GET /entry/<project_link_uid>/<live|test>?id=<USER_ID>
"""
import html
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_client_country, get_client_ip
from ..errors import InputError
from ..models.project import MODES
from ..services.click_session_service import build_destination, open_session
from ..services.link_resolver import resolve_entry

logger = logging.getLogger(__name__)
router = APIRouter(tags=["entry"])


def _entry_demo_page(project, mode: str, user_id: str, masked_id: str) -> str:
    """Página de diagnóstico cuando el proyecto no tiene link del cliente para el modo."""
    return f"""<!doctype html>
<html>
<head><meta charset="utf-8"><title>Entry - {html.escape(project.project_name)}</title></head>
<body>
  <h1>{html.escape(project.project_name)}</h1>
  <p>No client {html.escape(mode)} link configured for this project.</p>
  <ul>
    <li>Project UID: {html.escape(project.project_uid)}</li>
    <li>Mode: {html.escape(mode)}</li>
    <li>User ID: {html.escape(user_id)}</li>
    <li>Masked ID: <code>{html.escape(masked_id)}</code></li>
  </ul>
</body>
</html>"""


@router.get("/entry/{project_link_uid}/{mode}")
def entry(
    project_link_uid: str,
    mode: str,
    request: Request,
    id: str = "",
    db: Session = Depends(get_db),
):
    """
    Entrada del respondente.

    - Valida modo e id, resuelve el proyecto y exige que esté LIVE.
    - Crea la sesión 'pending' con un masked_id nuevo.
    - Redirige (302) al link del cliente con los placeholders completados.
    - Si no hay link para el modo, muestra una página con el masked_id asignado.
    """
    user_id = (id or "").strip()
    if mode not in MODES:
        raise InputError("Invalid mode")
    if not user_id:
        raise InputError("Missing id (user id)")

    project = resolve_entry(db, project_link_uid, mode)

    click = open_session(
        db,
        project,
        mode,
        user_id,
        entry_ip=get_client_ip(request),
        entry_country=get_client_country(request),
    )

    dest = build_destination(project, mode, click.masked_id)
    if not dest:
        logger.info(f"Proyecto {project.project_number} sin link '{mode}', mostrando página de diagnóstico")
        return HTMLResponse(_entry_demo_page(project, mode, user_id, click.masked_id))

    return RedirectResponse(dest, status_code=302)
