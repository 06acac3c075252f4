import logging

from sqlalchemy.orm import Session

from ..errors import GateRefused, InputError, NotFoundError
from ..models.project import MODES, PROJECT_STATUS_LIVE, Project

logger = logging.getLogger(__name__)


def resolve_entry(db: Session, link_uid: str, mode: str) -> Project:
    """
    Resuelve el link público /entry/<link_uid>/<mode> al proyecto vigente.

    - mode tiene que ser 'live' o 'test' (InputError).
    - Solo se busca por el project_link_uid actual: un link rotado no vuelve a
      resolver nunca (NotFoundError).
    - El proyecto tiene que estar LIVE para permitir la entrada (GateRefused).
    """
    if mode not in MODES:
        raise InputError("Invalid mode")

    project = db.query(Project).filter(Project.project_link_uid == link_uid).first()
    if not project:
        raise NotFoundError("Project not found")

    if project.status != PROJECT_STATUS_LIVE:
        logger.info(f"Entrada bloqueada: proyecto {project.project_number} en estado '{project.status}'")
        raise GateRefused("Project is not LIVE. Ask admin/manager to set status LIVE.")

    return project
