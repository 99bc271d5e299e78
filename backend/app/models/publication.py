# backend/app/models/publication.py
#
# Minimal read-only view of scheduled content. Publishing, approval and media
# handling live elsewhere; the calendar sync only reads these columns.

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship

from ..database import Base
from .base import BaseModel


publication_platforms = Table(
    "publication_platforms",
    Base.metadata,
    Column("publication_id", Integer, ForeignKey("publications.id", ondelete="CASCADE"), primary_key=True),
    Column("platform_id", Integer, ForeignKey("social_platforms.id", ondelete="CASCADE"), primary_key=True),
)


class SocialPlatform(BaseModel):
    __tablename__ = "social_platforms"

    id   = Column(Integer, primary_key=True, index=True)
    # facebook, instagram, tiktok, youtube, twitter
    name = Column(String, unique=True, nullable=False)


class Publication(BaseModel):
    __tablename__ = "publications"

    id           = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id      = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    campaign_id  = Column(Integer, ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True, index=True)
    title        = Column(String, nullable=True)
    content      = Column(Text, nullable=True)
    status       = Column(String, nullable=False, default="draft")
    scheduled_at = Column(DateTime, nullable=True, index=True)

    workspace = relationship("Workspace", back_populates="publications")
    user      = relationship("User", back_populates="publications")
    campaign  = relationship("Campaign", back_populates="publications")
    platforms = relationship("SocialPlatform", secondary=publication_platforms, lazy="selectin")

    @property
    def platform_names(self) -> list[str]:
        return [p.name for p in self.platforms or []]
