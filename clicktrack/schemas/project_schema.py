from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict
from datetime import datetime

from ..models.project import MODES, PROJECT_STATUSES, PROJECT_STATUS_PENDING


def _check_status(value: str) -> str:
    value = (value or "").strip().lower()
    if value not in PROJECT_STATUSES:
        raise ValueError(f"status debe ser uno de: {', '.join(PROJECT_STATUSES)}")
    return value


class ProjectCreate(BaseModel):
    project_name: str
    status: str = PROJECT_STATUS_PENDING
    client_live_link: Optional[str] = None
    client_test_link: Optional[str] = None

    @field_validator("project_name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("El nombre del proyecto es obligatorio")
        return value

    @field_validator("status")
    @classmethod
    def _valid_status(cls, value: str) -> str:
        return _check_status(value)


class ProjectUpdate(BaseModel):
    """Edición de los datos del proyecto; los campos que no vienen no se tocan."""
    project_name: Optional[str] = None
    status: Optional[str] = None

    @field_validator("project_name")
    @classmethod
    def _name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("El nombre del proyecto no puede quedar vacío")
        return value

    @field_validator("status")
    @classmethod
    def _valid_status(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_status(value)


class ProjectStatusUpdate(BaseModel):
    status: str  # live, pending, paused

    @field_validator("status")
    @classmethod
    def _valid_status(cls, value: str) -> str:
        return _check_status(value)


class ProjectLinksUpdate(BaseModel):
    """Links de la encuesta del cliente. Cada actualización rota el project_link_uid."""
    client_live_link: Optional[str] = None
    client_test_link: Optional[str] = None


class ProjectRedirectsUpdate(BaseModel):
    """URLs pegadas por el admin; se normalizan para que apunten a /redirect/<status> de este servidor."""
    redirect_complete_url: Optional[str] = None
    redirect_terminate_url: Optional[str] = None
    redirect_quotafull_url: Optional[str] = None
    redirect_securityterminate_url: Optional[str] = None


class ProjectOut(BaseModel):
    id: int
    project_number: int
    project_uid: str
    project_link_uid: str
    project_name: str
    status: str
    client_live_link: Optional[str] = None
    client_test_link: Optional[str] = None
    redirect_complete_url: Optional[str] = None
    redirect_terminate_url: Optional[str] = None
    redirect_quotafull_url: Optional[str] = None
    redirect_securityterminate_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProjectListOut(BaseModel):
    id: int
    project_number: int
    project_uid: str
    project_name: str
    status: str
    created_at: datetime
    total_clicks: int = 0
    completes: int = 0


class EntryLinks(BaseModel):
    live: str
    test: str


class CountryLinkCreate(BaseModel):
    country_name: str
    mode: str  # live, test
    link_url: str
    remark: Optional[str] = None

    @field_validator("country_name", "link_url")
    @classmethod
    def _required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Campo obligatorio")
        return value

    @field_validator("mode")
    @classmethod
    def _valid_mode(cls, value: str) -> str:
        value = (value or "").strip().lower()
        if value not in MODES:
            raise ValueError(f"mode debe ser uno de: {', '.join(MODES)}")
        return value

    @field_validator("remark")
    @classmethod
    def _blank_remark_is_none(cls, value: Optional[str]) -> Optional[str]:
        return (value or "").strip() or None


class CountryLinkOut(BaseModel):
    id: int
    country_name: str
    mode: str
    link_url: str
    remark: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProjectDetailOut(BaseModel):
    project: ProjectOut
    entry_links: EntryLinks  # Links propios que se reparten a los paneles
    redirects: Dict[str, str]  # Plantilla efectiva por resultado
    country_links: List[CountryLinkOut] = []
    can_edit: bool


class ClickSessionOut(BaseModel):
    id: int
    mode: str
    user_id: str
    masked_id: str
    entry_time: datetime
    entry_ip: Optional[str] = None
    entry_country: Optional[str] = None
    exit_time: Optional[datetime] = None
    exit_ip: Optional[str] = None
    status: str
    total_time: str  # HH:MM:SS o "-"

    model_config = {"from_attributes": True}


class ClickSessionListOut(BaseModel):
    project_id: int
    clicks: List[ClickSessionOut]
