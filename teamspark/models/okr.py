"""
OKR models: Objective -> KeyResult -> OkrCheckIn.

KeyResult.progress is a cache derived from check-ins and metric values;
OkrCheckIn rows are never updated once written.
"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Float, Enum, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from teamspark.database import Base


class ObjectiveOwner(str, enum.Enum):
    COMPANY = "COMPANY"
    TEAM = "TEAM"
    INDIVIDUAL = "INDIVIDUAL"


class OkrCycle(str, enum.Enum):
    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"
    Q4 = "Q4"
    ANNUAL = "ANNUAL"


class ObjectiveStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class KeyResultType(str, enum.Enum):
    METRIC = "METRIC"
    MILESTONE = "MILESTONE"


class MilestoneStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    AT_RISK = "AT_RISK"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Objective(Base):
    __tablename__ = "objectives"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    owner_type = Column(Enum(ObjectiveOwner), nullable=False)
    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    owner_team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    parent_id = Column(Integer, ForeignKey("objectives.id"), nullable=True)

    cycle = Column(Enum(OkrCycle), nullable=False)
    year = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(Enum(ObjectiveStatus), default=ObjectiveStatus.DRAFT, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    owner_user = relationship("User")
    owner_team = relationship("Team")
    parent = relationship("Objective", remote_side=[id], back_populates="children")
    children = relationship("Objective", back_populates="parent")
    key_results = relationship(
        "KeyResult", back_populates="objective",
        cascade="all, delete-orphan", order_by="KeyResult.id"
    )

    def __repr__(self):
        return f"<Objective {self.title} ({self.owner_type.value})>"


class KeyResult(Base):
    __tablename__ = "key_results"

    id = Column(Integer, primary_key=True, index=True)
    objective_id = Column(Integer, ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(KeyResultType), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # METRIC
    start_value = Column(Float, nullable=True)
    target_value = Column(Float, nullable=True)
    current_value = Column(Float, nullable=True)
    unit = Column(String(50), nullable=True)

    # MILESTONE
    milestone_status = Column(Enum(MilestoneStatus), nullable=True)

    progress = Column(Float, default=0.0, nullable=False)  # 0..1
    confidence = Column(Float, nullable=True)  # 0..1

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    objective = relationship("Objective", back_populates="key_results")
    owner = relationship("User")
    check_ins = relationship(
        "OkrCheckIn", back_populates="key_result",
        cascade="all, delete-orphan", order_by="OkrCheckIn.id.desc()"
    )

    @property
    def latest_check_in(self):
        return self.check_ins[0] if self.check_ins else None


class OkrCheckIn(Base):
    __tablename__ = "okr_check_ins"

    id = Column(Integer, primary_key=True, index=True)
    key_result_id = Column(Integer, ForeignKey("key_results.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    previous_value = Column(Float, nullable=True)
    current_value = Column(Float, nullable=True)
    progress = Column(Float, nullable=False)
    confidence = Column(Float, nullable=True)
    comment = Column(Text, nullable=True)
    blockers = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    key_result = relationship("KeyResult", back_populates="check_ins")
    user = relationship("User")
