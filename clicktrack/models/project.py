from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from ..database import Base

# Estados del proyecto
PROJECT_STATUS_LIVE = "live"
PROJECT_STATUS_PENDING = "pending"
PROJECT_STATUS_PAUSED = "paused"
PROJECT_STATUSES = (PROJECT_STATUS_LIVE, PROJECT_STATUS_PENDING, PROJECT_STATUS_PAUSED)

# Modos de entrada
MODE_LIVE = "live"
MODE_TEST = "test"
MODES = (MODE_LIVE, MODE_TEST)

# Columna que guarda la plantilla de redirección de cada resultado
REDIRECT_COLUMNS = {
    "complete": "redirect_complete_url",
    "terminate": "redirect_terminate_url",
    "quotafull": "redirect_quotafull_url",
    "securityTerminate": "redirect_securityterminate_url",
}


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    project_number = Column(Integer, unique=True, nullable=False, index=True)  # Secuencial (101, 102, ...)
    project_uid = Column(String(20), unique=True, nullable=False, index=True)  # Identidad estable, nunca cambia
    project_link_uid = Column(String(20), unique=True, nullable=False, index=True)  # Rota al editar los links del cliente
    project_name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=PROJECT_STATUS_PENDING)

    # Links de la encuesta del cliente (destino del respondente)
    client_live_link = Column(String(1000), nullable=True)
    client_test_link = Column(String(1000), nullable=True)

    # Plantillas de redirección por resultado (siempre apuntan a /redirect/<status> de este servidor)
    redirect_complete_url = Column(String(1000), nullable=True)
    redirect_terminate_url = Column(String(1000), nullable=True)
    redirect_quotafull_url = Column(String(1000), nullable=True)
    redirect_securityterminate_url = Column(String(1000), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Las sesiones nunca se borran (auditoría)
    click_sessions = relationship("ClickSession", back_populates="project")
    retired_link_uids = relationship("ProjectLinkUidHistory", back_populates="project")
    country_links = relationship(
        "ProjectCountryLink",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def destination_for(self, mode: str):
        """Link del cliente para el modo pedido (None si no está configurado)."""
        if mode == MODE_LIVE:
            return self.client_live_link
        if mode == MODE_TEST:
            return self.client_test_link
        return None
