"""
Ciclo de vida de una visita (ClickSession).

    pending --(callback /redirect/<status>)--> complete | terminate | quotafull | securityTerminate

Una sesión se cierra UNA sola vez. Si llega un segundo callback para una sesión
ya cerrada se rechaza con SessionAlreadyClosed y la fila queda intacta (gana la
primera escritura, también con callbacks concurrentes).
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..errors import InputError, NotFoundError, SessionAlreadyClosed
from ..models.click_session import ClickSession, CLICK_STATUS_PENDING, OUTCOME_KINDS
from ..models.project import Project
from ..utils import replace_placeholders, safe_append_param
from .identifiers import insert_with_unique_retry, new_visit_token

logger = logging.getLogger(__name__)


def open_session(
    db: Session,
    project: Project,
    mode: str,
    user_id: str,
    entry_ip: str = "",
    entry_country: str = "Unknown",
) -> ClickSession:
    """
    Registra la entrada del respondente y le asigna un masked_id nuevo.
    El proyecto ya tiene que venir resuelto y validado por resolve_entry.
    """
    user_id = (user_id or "").strip()
    if not user_id:
        raise InputError("Missing id (user id)")

    def _build() -> ClickSession:
        return ClickSession(
            project_id=project.id,
            project_uid=project.project_uid,
            mode=mode,
            user_id=user_id,
            masked_id=new_visit_token(),
            entry_time=datetime.utcnow(),
            entry_ip=entry_ip,
            entry_country=entry_country,
            status=CLICK_STATUS_PENDING,
        )

    click = insert_with_unique_retry(db, _build)
    logger.info(f"Entrada registrada: proyecto={project.project_number} modo={mode} mid={click.masked_id[:8]}...")
    return click


def build_destination(project: Project, mode: str, masked_id: str) -> str | None:
    """
    Link final de la encuesta del cliente para este respondente.

    El user_id interno NO se envía al cliente: {USER_ID}/{UID}/{ID} quedan vacíos,
    solo se completan MASKED_ID y PROJECT_UID. Además se agrega mid=<masked_id>
    para los proveedores que no usan placeholders.
    Devuelve None si el proyecto no tiene link configurado para ese modo.
    """
    dest = project.destination_for(mode)
    if not dest:
        return None
    dest = replace_placeholders(dest, {"MASKED_ID": masked_id, "PROJECT_UID": project.project_uid})
    return safe_append_param(dest, "mid", masked_id)


def find_session_for_callback(
    db: Session,
    mid: str | None = None,
    project_uid: str | None = None,
    user_id: str | None = None,
) -> ClickSession:
    """
    Busca la sesión que corresponde a un callback del proveedor.

    1. Con mid: coincidencia exacta por masked_id (confiable).
    2. Sin mid, con project + id: la sesión 'pending' más reciente de ese
       respondente en ese proyecto. Es menos precisa: si el mismo id tiene dos
       sesiones abiertas a la vez no hay forma de distinguirlas.
    """
    mid = (mid or "").strip()
    project_uid = (project_uid or "").strip()
    user_id = (user_id or "").strip()

    click = None
    if mid:
        click = db.query(ClickSession).filter(ClickSession.masked_id == mid).first()
    elif project_uid and user_id:
        click = (
            db.query(ClickSession)
            .filter(
                ClickSession.project_uid == project_uid,
                ClickSession.user_id == user_id,
                ClickSession.status == CLICK_STATUS_PENDING,
            )
            .order_by(ClickSession.entry_time.desc(), ClickSession.id.desc())
            .first()
        )
        if click:
            logger.info(f"Sesión resuelta por fallback (sin mid) para proyecto {project_uid}")

    if not click:
        raise NotFoundError("Session not found. Pass mid parameter for accurate matching.")
    return click


def record_outcome(
    db: Session,
    outcome_kind: str,
    mid: str | None = None,
    project_uid: str | None = None,
    user_id: str | None = None,
    exit_ip: str = "",
) -> ClickSession:
    """
    Cierra la sesión con el resultado reportado por el proveedor.

    El UPDATE es condicional (exit_time IS NULL y status pending), así que si
    otro callback ya la cerró no se toca nada y se lanza SessionAlreadyClosed.
    """
    if outcome_kind not in OUTCOME_KINDS:
        raise InputError("Invalid status")

    click = find_session_for_callback(db, mid=mid, project_uid=project_uid, user_id=user_id)

    updated = (
        db.query(ClickSession)
        .filter(
            ClickSession.id == click.id,
            ClickSession.exit_time.is_(None),
            ClickSession.status == CLICK_STATUS_PENDING,
        )
        .update(
            {
                ClickSession.status: outcome_kind,
                ClickSession.exit_time: datetime.utcnow(),
                ClickSession.exit_ip: exit_ip,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        logger.warning(f"Callback '{outcome_kind}' ignorado: la sesión mid={click.masked_id[:8]}... ya estaba cerrada ({click.status})")
        raise SessionAlreadyClosed(f"Session already closed with status '{click.status}'")

    db.commit()
    db.refresh(click)
    logger.info(f"Sesión cerrada: mid={click.masked_id[:8]}... status={outcome_kind}")
    return click
