# backend/app/models/user.py

from sqlalchemy import Boolean, Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from .base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    id           = Column(Integer, primary_key=True, index=True)
    email        = Column(String, unique=True, index=True, nullable=False)
    name         = Column(String, nullable=True)
    is_active    = Column(Boolean, default=True)
    # Workspace used when a request does not name one explicitly
    current_workspace_id = Column(
        Integer, ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True
    )

    current_workspace = relationship("Workspace", foreign_keys=[current_workspace_id])
    publications = relationship("Publication", back_populates="user")
    calendar_connections = relationship(
        "ExternalCalendarConnection",
        back_populates="user",
        cascade="all, delete-orphan",
    )
