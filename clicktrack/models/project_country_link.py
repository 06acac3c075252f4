from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from ..database import Base


class ProjectCountryLink(Base):
    """Link de entrada específico de un país (ej: el que se le pasa a un panel de México)."""
    __tablename__ = "project_country_links"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    country_name = Column(String(100), nullable=False)
    mode = Column(String(10), nullable=False)  # live, test
    link_url = Column(String(1000), nullable=False)
    remark = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="country_links")
