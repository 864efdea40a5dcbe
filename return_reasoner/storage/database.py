"""SQLAlchemy tables and session management for return claims."""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.claim import ClaimStatus
from ..utils.errors import PersistenceError, ReturnProcessingError

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ReturnClaim(Base):
    """A customer's return request."""

    __tablename__ = "return_claims"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    customer_name: Mapped[str] = mapped_column(String(255))
    customer_email: Mapped[str] = mapped_column(String(255))
    order_id: Mapped[Optional[str]] = mapped_column(String(64))
    product_category: Mapped[Optional[str]] = mapped_column(String(100))
    product_name: Mapped[str] = mapped_column(String(255))
    issue_category: Mapped[Optional[str]] = mapped_column(String(100))
    issue_description: Mapped[str] = mapped_column(Text)
    language: Mapped[str] = mapped_column(String(8), default="en")
    image_reference: Mapped[Optional[str]] = mapped_column(String(1024), index=True)
    original_image_reference: Mapped[Optional[str]] = mapped_column(String(1024), index=True)
    status: Mapped[str] = mapped_column(String(32), default=ClaimStatus.PROCESSING.value, index=True)
    more_info_requested: Mapped[bool] = mapped_column(Boolean, default=False)
    analysis_round: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    decisions: Mapped[List["ReturnDecision"]] = relationship(
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ReturnDecision.created_at",
    )


class ReturnDecision(Base):
    """One persisted outcome of a pipeline run (append-only)."""

    __tablename__ = "return_decisions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    claim_id: Mapped[str] = mapped_column(ForeignKey("return_claims.id"), index=True)
    vision_analysis: Mapped[str] = mapped_column(Text, default="")
    defect_category: Mapped[str] = mapped_column(String(64))
    damage_type: Mapped[Optional[str]] = mapped_column(String(64))
    # Snapshot reference only: no foreign key, so policy edits and deletes never touch it
    policy_id: Mapped[Optional[str]] = mapped_column(String(36))
    disposition: Mapped[str] = mapped_column(String(32))
    decision_reason: Mapped[str] = mapped_column(Text)
    escalation_reason: Mapped[Optional[str]] = mapped_column(Text)
    email_draft: Mapped[Optional[str]] = mapped_column(Text)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    is_suspicious_image: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_generated_image: Mapped[bool] = mapped_column(Boolean, default=False)
    image_quality: Mapped[Optional[str]] = mapped_column(String(16))
    has_watermark: Mapped[bool] = mapped_column(Boolean, default=False)
    language: Mapped[str] = mapped_column(String(8), default="en")
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    analysis_round: Mapped[Optional[int]] = mapped_column(Integer)
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    claim: Mapped[ReturnClaim] = relationship(back_populates="decisions")


class ReturnPolicy(Base):
    """Return policy for one defect category; maintained by admins."""

    __tablename__ = "return_policies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    defect_category: Mapped[str] = mapped_column(String(64), index=True)
    policy_type: Mapped[str] = mapped_column(String(64), default="standard")
    is_returnable: Mapped[bool] = mapped_column(Boolean, default=True)
    time_limit_days: Mapped[Optional[int]] = mapped_column(Integer)
    conditions: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Database:
    """
    Engine and session factory for the relational store.

    Every `session()` block is one transaction: committed on success, rolled
    back on error. Store errors surface as PersistenceError.
    """

    def __init__(self, url: str = "sqlite:///data/returns.db", echo: bool = False):
        self.url = url
        engine_kwargs = {"echo": echo}

        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if parsed.database in (None, "", ":memory:"):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
            else:
                Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(url, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"Initialized Database: backend={parsed.get_backend_name()}")

    def create_all(self) -> None:
        """Create any missing tables."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError.from_exception("create_all", e)

    @contextmanager
    def session(self, operation: str = "transaction") -> Iterator[Session]:
        """
        Open a transactional session.

        Args:
            operation: Label used in logs and PersistenceError details

        Yields:
            SQLAlchemy Session
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except ReturnProcessingError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise PersistenceError.from_exception(operation, e)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
