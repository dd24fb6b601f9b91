"""
SQL storage for the postback pipeline.

Maps the platform tables the engine reads (betting_houses, users) and writes
(eventos, comissoes, postback_logs). Every operation acquires its own
session and releases it before returning.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .calculators.rates import quantize_money
from .errors import StorageError
from .models import Affiliate, CommissionResult, House, PostbackContext, PostbackEvent
from .storage import STATUS_PROCESSING, idempotency_key

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class HouseRow(Base):
    """Betting house, administered outside the engine."""

    __tablename__ = "betting_houses"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    identifier: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # Rates are stored as text by the admin panel
    commission_type: Mapped[str] = mapped_column(Text, nullable=False)  # CPA, RevShare, Hybrid
    commission_value: Mapped[str] = mapped_column(Text, nullable=False)
    cpa_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    revshare_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_house(self) -> House:
        return House.from_dict({
            "id": self.id,
            "identifier": self.identifier,
            "name": self.name,
            "commission_type": self.commission_type,
            "commission_value": self.commission_value,
            "cpa_value": self.cpa_value,
            "revshare_value": self.revshare_value,
            "is_active": self.is_active,
        })


class UserRow(Base):
    """Affiliate account, owned by the identity subsystem."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(Text, default="affiliate")

    def to_affiliate(self) -> Affiliate:
        return Affiliate(
            username=self.username,
            id=self.id,
            full_name=self.full_name,
            email=self.email,
        )


class EventRow(Base):
    """One accepted postback event."""

    __tablename__ = "eventos"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    afiliado_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    casa: Mapped[str] = mapped_column(String(255), nullable=False)
    evento: Mapped[str] = mapped_column(String(255), nullable=False)
    valor: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    criado_em: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class CommissionRow(Base):
    """One commission line item credited to an affiliate."""

    __tablename__ = "comissoes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    afiliado_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    evento_id: Mapped[int] = mapped_column(ForeignKey("eventos.id"), nullable=False, index=True)
    tipo: Mapped[str] = mapped_column(String(32), nullable=False)  # CPA, RevShare
    valor: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    percentual: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    affiliate: Mapped[str] = mapped_column(String(255), nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class PostbackLogRow(Base):
    """Audit trail of every received postback, successful or not."""

    __tablename__ = "postback_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    casa: Mapped[str] = mapped_column(String(255), nullable=False)
    subid: Mapped[str] = mapped_column(String(255), nullable=False)
    evento: Mapped[str] = mapped_column(String(255), nullable=False)
    valor: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    raw: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


def build_engine(database_url: str, timeout: float = 5.0) -> Engine:
    """Create the SQLAlchemy engine, bounding waits on the pool and the server."""
    kwargs = {"pool_pre_ping": True}
    if database_url.startswith("postgresql"):
        kwargs["pool_timeout"] = timeout
        kwargs["connect_args"] = {
            "connect_timeout": int(timeout),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    elif database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"timeout": timeout}
    return create_engine(database_url, **kwargs)


class SqlStore:
    """Directory, commission recorder and postback log over SQLAlchemy."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, timeout: float = 5.0) -> "SqlStore":
        return cls(build_engine(database_url, timeout))

    def create_schema(self) -> None:
        """Create missing tables. Migrations are managed outside the engine."""
        Base.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return self.session_factory()

    # -------------------------------------------------------------------------
    # Directory
    # -------------------------------------------------------------------------

    def find_house_by_identifier(self, identifier: str) -> House | None:
        try:
            with self._session() as session:
                row = session.scalars(
                    select(HouseRow).where(HouseRow.identifier == identifier).order_by(HouseRow.id).limit(1)
                ).first()
                return row.to_house() if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"house lookup failed: {e}") from e

    def find_affiliate_by_username(self, username: str) -> Affiliate | None:
        try:
            with self._session() as session:
                row = session.scalars(
                    select(UserRow).where(UserRow.username == username).order_by(UserRow.id).limit(1)
                ).first()
                return row.to_affiliate() if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"affiliate lookup failed: {e}") from e

    # -------------------------------------------------------------------------
    # Commission recorder
    # -------------------------------------------------------------------------

    def record_commission(self, result: CommissionResult, ctx: PostbackContext) -> int:
        """
        Write the event and its line items in a single transaction.

        Either every row is committed or none is.
        """
        event = ctx.event
        affiliate = ctx.affiliate
        try:
            with self._session() as session, session.begin():
                event_row = EventRow(
                    afiliado_id=affiliate.id,
                    casa=ctx.house.identifier,
                    evento=event.event,
                    valor=quantize_money(event.amount),
                    customer_id=event.customer_id,
                    idempotency_key=idempotency_key(event),
                )
                session.add(event_row)
                session.flush()

                for item in result.items:
                    session.add(CommissionRow(
                        afiliado_id=affiliate.id,
                        evento_id=event_row.id,
                        tipo=item.kind.value,
                        valor=quantize_money(item.value),
                        percentual=item.percentage,
                        affiliate=affiliate.username,
                    ))
                return event_row.id
        except SQLAlchemyError as e:
            raise StorageError(f"commission write failed: {e}") from e

    # -------------------------------------------------------------------------
    # Postback log
    # -------------------------------------------------------------------------

    def open_log(self, event: PostbackEvent) -> int:
        try:
            with self._session() as session, session.begin():
                row = PostbackLogRow(
                    casa=event.house_identifier or "unknown",
                    subid=event.sub_id or "unknown",
                    evento=event.event or "unknown",
                    valor=quantize_money(event.amount),
                    ip=event.ip,
                    raw=event.raw,
                    status=STATUS_PROCESSING,
                )
                session.add(row)
                session.flush()
                return row.id
        except SQLAlchemyError as e:
            raise StorageError(f"postback log write failed: {e}") from e

    def close_log(self, log_id: int, status: str) -> None:
        try:
            with self._session() as session, session.begin():
                row = session.get(PostbackLogRow, log_id)
                if row is None:
                    logger.warning(f"Postback log {log_id} vanished before close")
                    return
                row.status = status
        except SQLAlchemyError as e:
            raise StorageError(f"postback log update failed: {e}") from e
