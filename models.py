from __future__ import annotations

from sqlalchemy import Boolean, Column, Float, Integer, String, Text, UniqueConstraint

from db import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    name = Column(Text, nullable=False, default="")
    # Stored lower-cased; login compares case-insensitively.
    email = Column(String, nullable=False, unique=True, index=True)
    department = Column(String, nullable=True, index=True)
    position = Column(String, nullable=True)
    grade = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active", index=True)
    # Only set for admins (password login); employees use email-only login.
    password_hash = Column(Text, nullable=False, default="")
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False, default="employee")
    created_at = Column(Text, nullable=False, default="")


class Program(Base):
    __tablename__ = "programs"

    id = Column(String, primary_key=True)
    title = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, default="Others", index=True)
    training_type = Column(String, nullable=False, default="")
    start_date_time = Column(Text, nullable=False, default="", index=True)
    end_date_time = Column(Text, nullable=False, default="", index=True)
    hours = Column(Float, nullable=False, default=0)
    status = Column(String, nullable=True)
    location = Column(Text, nullable=True)
    organizer = Column(Text, nullable=True)
    trainer = Column(Text, nullable=True)
    notify_for_evaluation = Column(Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class ProgramAssignment(Base):
    __tablename__ = "program_assignments"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    program_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="Assigned", index=True)
    attendance_marked_by = Column(String, nullable=True)
    attendance_marked_at = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class Evaluation(Base):
    """
    Post-training questionnaire.

    `answers` is a JSON object of q1..q9 -> LEMAH | SEDERHANA | BAGUS. One row per
    (user_id, program_id) is expected; EVALUATION_SUBMIT checks before inserting.
    """

    __tablename__ = "evaluations"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    program_id = Column(String, nullable=False, index=True)
    template_id = Column(String, nullable=True)
    answers = Column(Text, nullable=False, default="{}")
    submitted_at = Column(Text, nullable=False, default="", index=True)


class ProposedTraining(Base):
    __tablename__ = "proposed_trainings"
    __table_args__ = (UniqueConstraint("user_id", "year", name="uq_proposed_trainings_user_year"),)

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    proposal_1 = Column(Text, nullable=True)
    proposal_2 = Column(Text, nullable=True)
    proposal_1_entertained = Column(Boolean, nullable=False, default=False)
    proposal_2_entertained = Column(Boolean, nullable=False, default=False)
    entertained_at = Column(Text, nullable=True)
    entertained_by = Column(String, nullable=True)
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class ReminderLog(Base):
    __tablename__ = "reminders_log"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    program_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False, default="")
    sent_at = Column(Text, nullable=False, default="")


class Session(Base):
    __tablename__ = "sessions"

    sessionId = Column(String, primary_key=True)
    tokenHash = Column(String, nullable=False, unique=True, index=True)
    tokenPrefix = Column(String, nullable=False, default="")
    userId = Column(String, nullable=False, index=True)
    email = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, default="")
    issuedAt = Column(Text, nullable=False, default="")
    expiresAt = Column(Text, nullable=False, default="")
    lastSeenAt = Column(Text, nullable=False, default="")
    revokedAt = Column(Text, nullable=False, default="")
    revokedBy = Column(String, nullable=False, default="")


class AuditLog(Base):
    __tablename__ = "audit_log"

    logId = Column(String, primary_key=True)
    entityType = Column(String, nullable=False, default="", index=True)
    entityId = Column(String, nullable=False, default="", index=True)
    action = Column(String, nullable=False, default="", index=True)
    fromState = Column(String, nullable=False, default="")
    toState = Column(String, nullable=False, default="")
    stageTag = Column(String, nullable=False, default="")
    remark = Column(Text, nullable=False, default="")
    actorUserId = Column(String, nullable=False, default="")
    actorRole = Column(String, nullable=False, default="")
    actorEmail = Column(String, nullable=False, default="")
    at = Column(Text, nullable=False, default="", index=True)
    correlationId = Column(String, nullable=False, default="")
    metaJson = Column(Text, nullable=False, default="")
