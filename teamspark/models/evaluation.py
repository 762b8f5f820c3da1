"""
Performance evaluation models.

An EvaluationCycle owns its phases and evaluations; the organization boundary
for an Evaluation is its cycle's organization_id.
"""
from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Boolean, Enum, ForeignKey,
    UniqueConstraint, JSON,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from teamspark.database import Base


class EvaluationCycleType(str, enum.Enum):
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUAL = "SEMI_ANNUAL"
    ANNUAL = "ANNUAL"
    PROJECT = "PROJECT"


class CycleStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class EvaluationPhaseType(str, enum.Enum):
    SELF = "SELF"
    PEER = "PEER"
    MANAGER = "MANAGER"
    CALIBRATION = "CALIBRATION"


class EvaluationType(str, enum.Enum):
    SELF = "SELF"
    PEER = "PEER"
    MANAGER = "MANAGER"
    UPWARD = "UPWARD"


class EvaluationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    REVIEWED = "REVIEWED"
    SHARED = "SHARED"


class CompetencyCategory(str, enum.Enum):
    CORE = "CORE"
    LEADERSHIP = "LEADERSHIP"
    TECHNICAL = "TECHNICAL"
    FUNCTIONAL = "FUNCTIONAL"


class EvaluationCycle(Base):
    __tablename__ = "evaluation_cycles"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(Enum(EvaluationCycleType), nullable=False)
    status = Column(Enum(CycleStatus), default=CycleStatus.DRAFT, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    phases = relationship(
        "EvaluationPhase", back_populates="cycle",
        cascade="all, delete-orphan", order_by="EvaluationPhase.order"
    )
    evaluations = relationship("Evaluation", back_populates="cycle", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<EvaluationCycle {self.name} ({self.status.value})>"


class EvaluationPhase(Base):
    __tablename__ = "evaluation_phases"

    id = Column(Integer, primary_key=True, index=True)
    cycle_id = Column(Integer, ForeignKey("evaluation_cycles.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(EvaluationPhaseType), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    order = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    cycle = relationship("EvaluationCycle", back_populates="phases")


class Evaluation(Base):
    __tablename__ = "evaluations"
    __table_args__ = (
        UniqueConstraint("cycle_id", "evaluatee_id", "evaluator_id", "type", name="uq_evaluation_assignment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    cycle_id = Column(Integer, ForeignKey("evaluation_cycles.id", ondelete="CASCADE"), nullable=False, index=True)
    evaluatee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    evaluator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    type = Column(Enum(EvaluationType), nullable=False)
    status = Column(Enum(EvaluationStatus), default=EvaluationStatus.DRAFT, nullable=False, index=True)

    overall_rating = Column(Integer, nullable=True)  # 1-5
    overall_comments = Column(Text, nullable=True)
    strengths = Column(Text, nullable=True)
    improvements = Column(Text, nullable=True)
    career_goals = Column(Text, nullable=True)
    development_plan = Column(Text, nullable=True)
    manager_comments = Column(Text, nullable=True)

    is_visible = Column(Boolean, default=False, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    shared_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    cycle = relationship("EvaluationCycle", back_populates="evaluations")
    evaluatee = relationship("User", foreign_keys=[evaluatee_id])
    evaluator = relationship("User", foreign_keys=[evaluator_id])
    reviewer = relationship("User", foreign_keys=[reviewer_id])
    competency_ratings = relationship(
        "CompetencyRating", back_populates="evaluation", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Evaluation {self.id} {self.type.value} ({self.status.value})>"


class Competency(Base):
    __tablename__ = "competencies"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(Enum(CompetencyCategory), nullable=False)
    behaviors = Column(JSON, default=list)
    order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    ratings = relationship("CompetencyRating", back_populates="competency")


class CompetencyRating(Base):
    __tablename__ = "competency_ratings"
    __table_args__ = (
        UniqueConstraint("evaluation_id", "competency_id", name="uq_rating_per_competency"),
    )

    id = Column(Integer, primary_key=True, index=True)
    evaluation_id = Column(Integer, ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False, index=True)
    competency_id = Column(Integer, ForeignKey("competencies.id"), nullable=False)
    rating = Column(Integer, nullable=False)  # 1-5
    comments = Column(Text, nullable=True)
    behaviors = Column(JSON, nullable=True)
    examples = Column(Text, nullable=True)
    improvement_areas = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    evaluation = relationship("Evaluation", back_populates="competency_ratings")
    competency = relationship("Competency", back_populates="ratings")
