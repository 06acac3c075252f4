# Importar todos los modelos para que SQLAlchemy los registre antes de create_all()
from .project import Project
from .project_country_link import ProjectCountryLink
from .project_link_uid_history import ProjectLinkUidHistory
from .click_session import ClickSession

__all__ = [
    "Project",
    "ProjectCountryLink",
    "ProjectLinkUidHistory",
    "ClickSession",
]
