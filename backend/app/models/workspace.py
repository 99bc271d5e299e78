from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Workspace(BaseModel):
    __tablename__ = "workspaces"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)

    campaigns = relationship("Campaign", back_populates="workspace")
    publications = relationship("Publication", back_populates="workspace")
