"""
Router de los callbacks del proveedor de encuestas (fin de la encuesta):

    GET /redirect/<complete|terminate|quotafull|securityTerminate>?mid=<MASKED_ID>
    GET /redirect/<status>?project=<PROJECT_UID>&id=<USER_ID>   (fallback, menos preciso)
"""
import html
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_client_ip
from ..services.click_session_service import record_outcome

logger = logging.getLogger(__name__)
router = APIRouter(tags=["redirects"])


def _redirect_done_page(status: str, masked_id: str) -> str:
    return f"""<!doctype html>
<html>
<head><meta charset="utf-8"><title>Thank you</title></head>
<body>
  <h1>Thank you!</h1>
  <p>Your response has been recorded as <strong>{html.escape(status)}</strong>.</p>
  <p><small>Reference: {html.escape(masked_id)}</small></p>
</body>
</html>"""


@router.get("/redirect/{status}")
def redirect_callback(
    status: str,
    request: Request,
    mid: str = "",
    project: str = "",
    id: str = "",
    db: Session = Depends(get_db),
):
    """
    Cierra la sesión del respondente con el resultado indicado.

    Con `mid` la sesión se identifica de forma exacta. Sin `mid` se usa la última
    sesión pendiente de `project` + `id`, que no distingue dos sesiones abiertas
    del mismo respondente.
    """
    click = record_outcome(
        db,
        status,
        mid=mid,
        project_uid=project,
        user_id=id,
        exit_ip=get_client_ip(request),
    )
    return HTMLResponse(_redirect_done_page(click.status, click.masked_id))
