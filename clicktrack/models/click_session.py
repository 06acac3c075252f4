from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime

from ..database import Base

# Estados de la sesión
CLICK_STATUS_PENDING = "pending"
CLICK_STATUS_COMPLETE = "complete"
CLICK_STATUS_TERMINATE = "terminate"
CLICK_STATUS_QUOTAFULL = "quotafull"
CLICK_STATUS_SECURITY_TERMINATE = "securityTerminate"

# Resultados finales que puede reportar el proveedor de la encuesta
OUTCOME_KINDS = (
    CLICK_STATUS_COMPLETE,
    CLICK_STATUS_TERMINATE,
    CLICK_STATUS_QUOTAFULL,
    CLICK_STATUS_SECURITY_TERMINATE,
)


class ClickSession(Base):
    """
    Una visita de un respondente: se crea al entrar por el link del proyecto
    y se cierra una sola vez cuando el proveedor llama a /redirect/<status>.
    """
    __tablename__ = "click_sessions"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    project_uid = Column(String(20), nullable=False)  # Copia para el fallback sin mid
    mode = Column(String(10), nullable=False)  # live, test
    user_id = Column(String(255), nullable=False)  # ID externo del panel, nunca se envía al cliente
    masked_id = Column(String(36), unique=True, nullable=False, index=True)  # UUID4 expuesto al cliente

    entry_time = Column(DateTime, default=datetime.utcnow, nullable=False)
    entry_ip = Column(String(100), nullable=True)
    entry_country = Column(String(100), nullable=True)

    exit_time = Column(DateTime, nullable=True)
    exit_ip = Column(String(100), nullable=True)

    status = Column(String(30), nullable=False, default=CLICK_STATUS_PENDING)

    project = relationship("Project", back_populates="click_sessions")

    __table_args__ = (
        Index("ix_click_sessions_fallback", "project_uid", "user_id", "status"),
    )

    @property
    def total_time(self) -> str:
        """Duración HH:MM:SS entre entrada y salida ('-' si la sesión sigue abierta)."""
        if not self.entry_time or not self.exit_time or self.exit_time < self.entry_time:
            return "-"
        total_sec = int((self.exit_time - self.entry_time).total_seconds())
        h, rest = divmod(total_sec, 3600)
        m, s = divmod(rest, 60)
        return f"{h:02d}:{m:02d}:{s:02d}"
