# backend/database/models.py
from sqlalchemy import (
    Column, String, DateTime, Text, Integer, Boolean, ForeignKey, Index, JSON, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
import uuid

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")

SEVERITY_LEVELS = ("info", "warning", "critical")
SERVICE_STATUSES = ("up", "down", "unknown")
USER_ROLES = ("admin", "user")

SETTINGS_SINGLETON_KEY = "default"
DEFAULT_THRESHOLDS = {"responseTime": 1000, "errorRate": 5}


def generate_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    owner_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", lazy="selectin")


class UserProjectAssignment(Base):
    __tablename__ = "user_projects"

    id = Column(String(32), primary_key=True, default=generate_id)
    user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
    project_id = Column(String(32), ForeignKey("projects.id"), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "project_id", name="uq_user_project"),
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    url = Column(String(2048), nullable=False)
    status = Column(String(20), nullable=False, default="unknown")
    last_checked = Column(DateTime)
    # Not a foreign key: services outlive a deleted project
    project_id = Column(String(32), index=True, nullable=False)
    auto_check = Column(Boolean, nullable=False, default=False, index=True)
    minute_interval = Column(Integer)
    report_success = Column(Boolean, nullable=False, default=False)
    last_auto_check = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Log(Base):
    __tablename__ = "logs"

    id = Column(String(32), primary_key=True, default=generate_id)
    text = Column(Text, nullable=False)
    summary = Column(Text, nullable=False, default="")
    cause = Column(Text, nullable=False, default="")
    severity = Column(String(20), index=True, nullable=False, default="info")
    fix = Column(Text, nullable=False, default="")
    code_patch = Column(Text, nullable=False, default="")
    ai_raw = Column(JSONType, nullable=False, default=dict)
    project_id = Column(String(32), index=True)
    service_id = Column(String(32), index=True)
    function_name = Column(String(255))
    # up/down for service-check logs, null for everything else
    check_status = Column(String(20))
    created_at = Column(DateTime, index=True, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Substring search over log text
    __table_args__ = (
        Index('idx_log_text_trgm', 'text', postgresql_using='gin',
              postgresql_ops={'text': 'gin_trgm_ops'}),
    )


class QueryOptimizationLog(Base):
    __tablename__ = "query_optimization_logs"

    id = Column(String(32), primary_key=True, default=generate_id)
    query = Column(Text, nullable=False)
    query_type = Column(String(100), nullable=False, default="Unknown")
    language = Column(String(100), nullable=False, default="Unknown")
    is_valid = Column(Boolean, nullable=False, default=True)
    errors = Column(JSONType, nullable=False, default=list)
    optimized_query = Column(Text, nullable=False, default="")
    optimization_reason = Column(Text, nullable=False, default="")
    optimizations = Column(JSONType, nullable=False, default=list)
    index_suggestions = Column(JSONType, nullable=False, default=list)
    corrected_query = Column(Text, nullable=False, default="")
    ai_raw = Column(JSONType, nullable=False, default=dict)
    project_id = Column(String(32), index=True, nullable=False)
    function_name = Column(String(255))
    created_at = Column(DateTime, index=True, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Setting(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    singleton_key = Column(String(32), nullable=False, default=SETTINGS_SINGLETON_KEY)
    telegram_bot_token = Column(String(255), nullable=False, default="")
    telegram_group_id = Column(String(255), nullable=False, default="")
    thresholds = Column(JSONType, nullable=False, default=lambda: dict(DEFAULT_THRESHOLDS))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("singleton_key", name="uq_settings_singleton"),
    )
