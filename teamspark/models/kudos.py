from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from teamspark.database import Base


class KudosCategory(str, enum.Enum):
    TEAMWORK = "TEAMWORK"
    INNOVATION = "INNOVATION"
    LEADERSHIP = "LEADERSHIP"
    PROBLEM_SOLVING = "PROBLEM_SOLVING"
    CUSTOMER_FOCUS = "CUSTOMER_FOCUS"
    LEARNING = "LEARNING"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class Kudos(Base):
    __tablename__ = "kudos"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category = Column(Enum(KudosCategory), nullable=False)
    message = Column(Text, nullable=False)
    is_public = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])


class SlackWorkspace(Base):
    """Maps a Slack team (workspace) to an organization."""
    __tablename__ = "slack_workspaces"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    team_id = Column(String, unique=True, index=True, nullable=False)
    team_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    organization = relationship("Organization", back_populates="slack_workspaces")
