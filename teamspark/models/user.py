"""
User Model with RBAC.
Every user belongs to exactly one organization.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from teamspark.database import Base


class UserRole(str, enum.Enum):
    """
    User roles, most to least privileged.

    - ADMIN: Full access within the organization
    - MANAGER: Manages the teams they are assigned to
    - MEMBER: Self-service access
    """
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=True)
    bio = Column(Text, nullable=True)

    role = Column(Enum(UserRole), default=UserRole.MEMBER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    slack_user_id = Column(String, nullable=True, index=True)

    # Admin bookkeeping
    last_role_change = Column(DateTime(timezone=True), nullable=True)
    last_role_changed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)
    deactivated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    deactivation_reason = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    organization = relationship("Organization", back_populates="users")
    team_memberships = relationship("TeamMember", back_populates="user", cascade="all, delete-orphan")
    managed_teams = relationship("Team", back_populates="manager", foreign_keys="Team.manager_id")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def team_ids(self) -> list:
        return [m.team_id for m in self.team_memberships]

    @property
    def managed_team_ids(self) -> list:
        return [t.id for t in self.managed_teams]

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN and self.is_active

    @property
    def is_manager_or_higher(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.MANAGER) and self.is_active
