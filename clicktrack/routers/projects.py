"""
Router de administración de proyectos (datos, links de entrada, links por país,
estado y redirecciones). Las operaciones de escritura requieren rol admin o manager.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func, or_, String, cast

from ..dependencies import RequestContext, get_request_context, require_editor
from ..errors import ClickTrackError
from ..models.click_session import ClickSession, CLICK_STATUS_COMPLETE, OUTCOME_KINDS
from ..models.project import Project, REDIRECT_COLUMNS
from ..models.project_country_link import ProjectCountryLink
from ..models.project_link_uid_history import ProjectLinkUidHistory
from ..schemas.project_schema import (
    ClickSessionListOut,
    ClickSessionOut,
    CountryLinkCreate,
    CountryLinkOut,
    EntryLinks,
    ProjectCreate,
    ProjectDetailOut,
    ProjectLinksUpdate,
    ProjectListOut,
    ProjectOut,
    ProjectRedirectsUpdate,
    ProjectStatusUpdate,
    ProjectUpdate,
)
from ..services.identifiers import (
    commit_with_unique_retry,
    insert_with_unique_retry,
    next_project_number,
    unique_link_uid,
    unique_short_token,
)
from ..services.redirect_normalizer import default_redirects, normalize_redirect

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/projects", tags=["projects"])

CLICKS_LIMIT = 200


def _get_project_or_404(ctx: RequestContext, project_id: int) -> Project:
    project = ctx.db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _entry_links(project: Project, base_url: str) -> EntryLinks:
    return EntryLinks(
        live=f"{base_url}/entry/{project.project_link_uid}/live?id={{USER_ID}}",
        test=f"{base_url}/entry/{project.project_link_uid}/test?id={{USER_ID}}",
    )


def _effective_redirects(project: Project, base_url: str) -> dict:
    """Plantilla guardada o, si está vacía, la de por defecto."""
    defaults = default_redirects(base_url)
    return {
        kind: getattr(project, REDIRECT_COLUMNS[kind]) or defaults[kind]
        for kind in OUTCOME_KINDS
    }


def _country_links(ctx: RequestContext, project: Project) -> List[ProjectCountryLink]:
    return (
        ctx.db.query(ProjectCountryLink)
        .filter(ProjectCountryLink.project_id == project.id)
        .order_by(ProjectCountryLink.created_at.desc(), ProjectCountryLink.id.desc())
        .all()
    )


def _project_detail(ctx: RequestContext, project: Project) -> ProjectDetailOut:
    return ProjectDetailOut(
        project=ProjectOut.model_validate(project),
        entry_links=_entry_links(project, ctx.base_url),
        redirects=_effective_redirects(project, ctx.base_url),
        country_links=[CountryLinkOut.model_validate(link) for link in _country_links(ctx, project)],
        can_edit=ctx.can_edit,
    )


@router.get("", response_model=List[ProjectListOut])
def list_projects(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    q: Optional[str] = Query(default=None, description="Buscar por nombre, número o UID"),
    ctx: RequestContext = Depends(get_request_context),
):
    """
    Listado de proyectos con total de clicks y completes.
    """
    db = ctx.db
    query = (
        db.query(
            Project,
            func.count(ClickSession.id).label("total_clicks"),
            func.coalesce(
                func.sum(case((ClickSession.status == CLICK_STATUS_COMPLETE, 1), else_=0)), 0
            ).label("completes"),
        )
        .outerjoin(ClickSession, ClickSession.project_id == Project.id)
        .group_by(Project.id)
    )

    if status_filter:
        query = query.filter(Project.status == status_filter.strip().lower())

    if q and q.strip():
        term = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Project.project_name.ilike(term),
                cast(Project.project_number, String).like(term),
                Project.project_uid.ilike(term),
            )
        )

    rows = query.order_by(Project.created_at.desc(), Project.id.desc()).all()
    return [
        ProjectListOut(
            id=p.id,
            project_number=p.project_number,
            project_uid=p.project_uid,
            project_name=p.project_name,
            status=p.status,
            created_at=p.created_at,
            total_clicks=total_clicks or 0,
            completes=completes or 0,
        )
        for p, total_clicks, completes in rows
    ]


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectCreate, ctx: RequestContext = Depends(require_editor)):
    """
    Crea un proyecto nuevo.

    - project_number = máximo + 1
    - project_uid (identidad) y project_link_uid (link vigente) únicos de 8 caracteres
    - Redirecciones por defecto apuntando a /redirect/<status>?mid={MASKED_ID}
    """
    db = ctx.db
    try:
        redirects = default_redirects(ctx.base_url)

        def _build() -> Project:
            # Si otro request gana la carrera, la restricción UNIQUE hace fallar el insert y se reconstruye
            return Project(
                project_number=next_project_number(db),
                project_uid=unique_short_token(db, Project.project_uid),
                project_link_uid=unique_link_uid(db),
                project_name=payload.project_name,
                status=payload.status,
                client_live_link=(payload.client_live_link or "").strip() or None,
                client_test_link=(payload.client_test_link or "").strip() or None,
                **{REDIRECT_COLUMNS[kind]: url for kind, url in redirects.items()},
            )

        project = insert_with_unique_retry(db, _build)
        logger.info(f"Proyecto creado: #{project.project_number} uid={project.project_uid}")
        return project

    except (HTTPException, ClickTrackError):
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error al crear proyecto: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al crear el proyecto"
        )


@router.get("/{project_id}", response_model=ProjectDetailOut)
def get_project(project_id: int, ctx: RequestContext = Depends(get_request_context)):
    project = _get_project_or_404(ctx, project_id)
    return _project_detail(ctx, project)


@router.put("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    ctx: RequestContext = Depends(require_editor),
):
    """Edita nombre y/o estado. Los identificadores y links no se tocan acá."""
    project = _get_project_or_404(ctx, project_id)
    changes = payload.model_dump(exclude_none=True)
    for field, value in changes.items():
        setattr(project, field, value)

    ctx.db.commit()
    ctx.db.refresh(project)
    logger.info(f"Proyecto #{project.project_number} editado: {', '.join(changes) or 'sin cambios'}")
    return project


@router.put("/{project_id}/status", response_model=ProjectOut)
def update_project_status(
    project_id: int,
    payload: ProjectStatusUpdate,
    ctx: RequestContext = Depends(require_editor),
):
    """Cambia el estado del proyecto. Solo en 'live' se aceptan entradas."""
    project = _get_project_or_404(ctx, project_id)
    previous = project.status
    project.status = payload.status
    ctx.db.commit()
    ctx.db.refresh(project)
    logger.info(f"Proyecto #{project.project_number}: estado {previous} -> {project.status}")
    return project


@router.put("/{project_id}/links", response_model=ProjectOut)
def update_project_links(
    project_id: int,
    payload: ProjectLinksUpdate,
    ctx: RequestContext = Depends(require_editor),
):
    """
    Actualiza los links de la encuesta del cliente.

    Cada actualización genera un project_link_uid NUEVO y guarda el anterior en el
    historial: los links de entrada repartidos antes dejan de funcionar (404) y
    ese uid no se vuelve a emitir nunca.
    """
    db = ctx.db
    project = _get_project_or_404(ctx, project_id)

    def _rotate() -> Project:
        # Después de un rollback el proyecto se recarga, así que project_link_uid vuelve a ser el vigente
        old_link_uid = project.project_link_uid
        db.add(ProjectLinkUidHistory(project_id=project.id, link_uid=old_link_uid))
        project.client_live_link = (payload.client_live_link or "").strip() or None
        project.client_test_link = (payload.client_test_link or "").strip() or None
        project.project_link_uid = unique_link_uid(db)
        return project

    try:
        project = commit_with_unique_retry(db, _rotate)
        logger.info(f"Proyecto #{project.project_number}: links actualizados, nuevo link uid {project.project_link_uid}")
        return project

    except (HTTPException, ClickTrackError):
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error al actualizar links del proyecto {project_id}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al actualizar los links del proyecto"
        )


@router.put("/{project_id}/redirects", response_model=ProjectDetailOut)
def update_project_redirects(
    project_id: int,
    payload: ProjectRedirectsUpdate,
    ctx: RequestContext = Depends(require_editor),
):
    """
    Guarda las plantillas de redirección.

    IMPORTANTE: siempre tienen que volver a ESTE servidor para poder actualizar
    el estado del click, así que se normalizan a /redirect/<status>?mid={MASKED_ID}.
    """
    project = _get_project_or_404(ctx, project_id)
    data = payload.model_dump()
    for kind, column in REDIRECT_COLUMNS.items():
        setattr(project, column, normalize_redirect(kind, data.get(column), ctx.base_url))

    ctx.db.commit()
    ctx.db.refresh(project)
    logger.info(f"Proyecto #{project.project_number}: redirecciones actualizadas")
    return _project_detail(ctx, project)


@router.get("/{project_id}/clicks", response_model=ClickSessionListOut)
def list_project_clicks(project_id: int, ctx: RequestContext = Depends(get_request_context)):
    """Últimos clicks del proyecto (más recientes primero) con su duración."""
    project = _get_project_or_404(ctx, project_id)
    clicks = (
        ctx.db.query(ClickSession)
        .filter(ClickSession.project_id == project.id)
        .order_by(ClickSession.entry_time.desc(), ClickSession.id.desc())
        .limit(CLICKS_LIMIT)
        .all()
    )
    return ClickSessionListOut(
        project_id=project.id,
        clicks=[ClickSessionOut.model_validate(c) for c in clicks],
    )


# ============================================================================
# Links de entrada por país
# ============================================================================

@router.get("/{project_id}/country-links", response_model=List[CountryLinkOut])
def list_country_links(project_id: int, ctx: RequestContext = Depends(get_request_context)):
    project = _get_project_or_404(ctx, project_id)
    return _country_links(ctx, project)


@router.post(
    "/{project_id}/country-links",
    response_model=CountryLinkOut,
    status_code=status.HTTP_201_CREATED,
)
def add_country_link(
    project_id: int,
    payload: CountryLinkCreate,
    ctx: RequestContext = Depends(require_editor),
):
    """Agrega un link de entrada para un país (se guarda tal cual lo pegó el admin)."""
    project = _get_project_or_404(ctx, project_id)
    link = ProjectCountryLink(project_id=project.id, **payload.model_dump())
    ctx.db.add(link)
    ctx.db.commit()
    ctx.db.refresh(link)
    logger.info(f"Proyecto #{project.project_number}: link de país agregado ({link.country_name}, {link.mode})")
    return link


@router.delete("/{project_id}/country-links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_country_link(
    project_id: int,
    link_id: int,
    ctx: RequestContext = Depends(require_editor),
):
    project = _get_project_or_404(ctx, project_id)
    link = (
        ctx.db.query(ProjectCountryLink)
        .filter(ProjectCountryLink.id == link_id, ProjectCountryLink.project_id == project.id)
        .first()
    )
    if not link:
        raise HTTPException(status_code=404, detail="Country link not found")

    ctx.db.delete(link)
    ctx.db.commit()
    logger.info(f"Proyecto #{project.project_number}: link de país {link_id} eliminado")
    return None
