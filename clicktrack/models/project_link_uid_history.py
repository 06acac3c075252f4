from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from ..database import Base


class ProjectLinkUidHistory(Base):
    """
    Link uids que un proyecto ya dejó de usar.
    Nunca se vuelven a emitir: un link de entrada viejo tiene que seguir dando 404.
    """
    __tablename__ = "project_link_uid_history"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    link_uid = Column(String(20), unique=True, nullable=False, index=True)
    retired_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="retired_link_uids")
