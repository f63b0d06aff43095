"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from sqlalchemy import Boolean, Column, Float, Integer, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker


class DbClient(Protocol):
    """Interface for the tables the services read and write."""

    def insert_location(
        self,
        booking_id: str,
        transporter_id: str,
        lat: float,
        lng: float,
        *,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> "LocationUpdate":
        ...

    def find_latest_location(
        self, booking_id: str, transporter_id: Optional[str] = None
    ) -> Optional["LocationUpdate"]:
        ...

    def list_payment_methods(self, user_id: str) -> list["SavedPaymentMethod"]:
        ...

    def find_default_payment_method(
        self, user_id: str
    ) -> Optional["SavedPaymentMethod"]:
        ...

    def insert_payment_method(
        self, method: "SavedPaymentMethod"
    ) -> "SavedPaymentMethod":
        ...

    def set_payment_method_default(
        self, method_id: str, user_id: str, *, exclusive: bool = False
    ) -> Optional["SavedPaymentMethod"]:
        ...

    def delete_payment_method(self, method_id: str, user_id: str) -> bool:
        ...

    def find_payment_method_by_card(
        self, user_id: str, last4: str, exp_month: int, exp_year: int
    ) -> Optional["SavedPaymentMethod"]:
        ...


@dataclass
class LocationUpdate:
    booking_id: str
    transporter_id: str
    lat: float
    lng: float
    heading: Optional[float] = None
    speed: Optional[float] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "transporter_id": self.transporter_id,
            "lat": self.lat,
            "lng": self.lng,
            "heading": self.heading,
            "speed": self.speed,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "LocationUpdate":
        return cls(
            id=payload["id"],
            booking_id=payload["booking_id"],
            transporter_id=payload["transporter_id"],
            lat=payload["lat"],
            lng=payload["lng"],
            heading=payload.get("heading"),
            speed=payload.get("speed"),
            created_at=payload["created_at"],
        )


@dataclass
class SavedPaymentMethod:
    user_id: str
    card_last4: str
    card_exp_month: int
    card_exp_year: int
    is_default: bool = False
    card_brand: Optional[str] = None
    cardholder_name: Optional[str] = None
    stripe_payment_method_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "card_last4": self.card_last4,
            "card_exp_month": self.card_exp_month,
            "card_exp_year": self.card_exp_year,
            "is_default": self.is_default,
            "card_brand": self.card_brand,
            "cardholder_name": self.cardholder_name,
            "stripe_payment_method_id": self.stripe_payment_method_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def _order_payment_methods(
    methods: List[SavedPaymentMethod],
) -> List[SavedPaymentMethod]:
    # Reversed first so insertion order breaks created_at ties newest-first.
    return sorted(
        reversed(methods), key=lambda m: (not m.is_default, -m.created_at)
    )


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.locations: List[LocationUpdate] = []
        self.payment_methods: Dict[str, SavedPaymentMethod] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.locations.clear()
        self.payment_methods.clear()

    def insert_location(
        self,
        booking_id: str,
        transporter_id: str,
        lat: float,
        lng: float,
        *,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> LocationUpdate:
        record = LocationUpdate(
            booking_id=booking_id,
            transporter_id=transporter_id,
            lat=lat,
            lng=lng,
            heading=heading,
            speed=speed,
        )
        self.locations.append(record)
        return record

    def find_latest_location(
        self, booking_id: str, transporter_id: Optional[str] = None
    ) -> Optional[LocationUpdate]:
        # Append-only log: the last matching entry is the newest.
        for record in reversed(self.locations):
            if record.booking_id != booking_id:
                continue
            if transporter_id and record.transporter_id != transporter_id:
                continue
            return record
        return None

    def _user_methods(self, user_id: str) -> List[SavedPaymentMethod]:
        return [m for m in self.payment_methods.values() if m.user_id == user_id]

    def list_payment_methods(self, user_id: str) -> list[SavedPaymentMethod]:
        return _order_payment_methods(self._user_methods(user_id))

    def find_default_payment_method(
        self, user_id: str
    ) -> Optional[SavedPaymentMethod]:
        defaults = [m for m in self._user_methods(user_id) if m.is_default]
        if not defaults:
            return None
        return _order_payment_methods(defaults)[0]

    def insert_payment_method(
        self, method: SavedPaymentMethod
    ) -> SavedPaymentMethod:
        self.payment_methods[method.id] = method
        return method

    def set_payment_method_default(
        self, method_id: str, user_id: str, *, exclusive: bool = False
    ) -> Optional[SavedPaymentMethod]:
        method = self.payment_methods.get(method_id)
        if not method or method.user_id != user_id:
            return None
        now = time.time()
        if exclusive:
            for other in self._user_methods(user_id):
                if other.is_default and other.id != method_id:
                    other.is_default = False
                    other.updated_at = now
        method.is_default = True
        method.updated_at = now
        return method

    def delete_payment_method(self, method_id: str, user_id: str) -> bool:
        method = self.payment_methods.get(method_id)
        if not method or method.user_id != user_id:
            return False
        del self.payment_methods[method_id]
        return True

    def find_payment_method_by_card(
        self, user_id: str, last4: str, exp_month: int, exp_year: int
    ) -> Optional[SavedPaymentMethod]:
        for method in self._user_methods(user_id):
            if (
                method.card_last4 == last4
                and method.card_exp_month == exp_month
                and method.card_exp_year == exp_year
            ):
                return method
        return None


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_location(self, row: "LocationRow") -> LocationUpdate:
        return LocationUpdate(
            id=row.id,
            booking_id=row.booking_id,
            transporter_id=row.transporter_id,
            lat=row.lat,
            lng=row.lng,
            heading=row.heading,
            speed=row.speed,
            created_at=row.created_at,
        )

    def _to_payment_method(self, row: "PaymentMethodRow") -> SavedPaymentMethod:
        return SavedPaymentMethod(
            id=row.id,
            user_id=row.user_id,
            card_last4=row.card_last4,
            card_exp_month=row.card_exp_month,
            card_exp_year=row.card_exp_year,
            is_default=row.is_default,
            card_brand=row.card_brand,
            cardholder_name=row.cardholder_name,
            stripe_payment_method_id=row.stripe_payment_method_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def insert_location(
        self,
        booking_id: str,
        transporter_id: str,
        lat: float,
        lng: float,
        *,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> LocationUpdate:
        with self.Session() as session:
            row = LocationRow(
                id=uuid.uuid4().hex,
                booking_id=booking_id,
                transporter_id=transporter_id,
                lat=lat,
                lng=lng,
                heading=heading,
                speed=speed,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_location(row)

    def find_latest_location(
        self, booking_id: str, transporter_id: Optional[str] = None
    ) -> Optional[LocationUpdate]:
        with self.Session() as session:
            stmt = select(LocationRow).where(LocationRow.booking_id == booking_id)
            if transporter_id:
                stmt = stmt.where(LocationRow.transporter_id == transporter_id)
            stmt = stmt.order_by(
                LocationRow.created_at.desc(), LocationRow.seq.desc()
            ).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return self._to_location(row)

    def list_payment_methods(self, user_id: str) -> list[SavedPaymentMethod]:
        with self.Session() as session:
            rows = (
                session.query(PaymentMethodRow)
                .filter(PaymentMethodRow.user_id == user_id)
                .order_by(
                    PaymentMethodRow.is_default.desc(),
                    PaymentMethodRow.created_at.desc(),
                    PaymentMethodRow.seq.desc(),
                )
                .all()
            )
            return [self._to_payment_method(row) for row in rows]

    def find_default_payment_method(
        self, user_id: str
    ) -> Optional[SavedPaymentMethod]:
        with self.Session() as session:
            stmt = (
                select(PaymentMethodRow)
                .where(
                    PaymentMethodRow.user_id == user_id,
                    PaymentMethodRow.is_default.is_(True),
                )
                .order_by(
                    PaymentMethodRow.created_at.desc(), PaymentMethodRow.seq.desc()
                )
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_payment_method(row) if row else None

    def insert_payment_method(
        self, method: SavedPaymentMethod
    ) -> SavedPaymentMethod:
        with self.Session() as session:
            row = PaymentMethodRow(
                id=method.id,
                user_id=method.user_id,
                card_last4=method.card_last4,
                card_exp_month=method.card_exp_month,
                card_exp_year=method.card_exp_year,
                is_default=method.is_default,
                card_brand=method.card_brand,
                cardholder_name=method.cardholder_name,
                stripe_payment_method_id=method.stripe_payment_method_id,
                created_at=method.created_at,
                updated_at=method.updated_at,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_payment_method(row)

    def set_payment_method_default(
        self, method_id: str, user_id: str, *, exclusive: bool = False
    ) -> Optional[SavedPaymentMethod]:
        now = time.time()
        with self.Session() as session:
            row = session.execute(
                select(PaymentMethodRow).where(
                    PaymentMethodRow.id == method_id,
                    PaymentMethodRow.user_id == user_id,
                )
            ).scalar_one_or_none()
            if not row:
                return None
            if exclusive:
                session.query(PaymentMethodRow).filter(
                    PaymentMethodRow.user_id == user_id,
                    PaymentMethodRow.id != method_id,
                    PaymentMethodRow.is_default.is_(True),
                ).update(
                    {
                        PaymentMethodRow.is_default: False,
                        PaymentMethodRow.updated_at: now,
                    },
                    synchronize_session=False,
                )
            row.is_default = True
            row.updated_at = now
            session.commit()
            session.refresh(row)
            return self._to_payment_method(row)

    def delete_payment_method(self, method_id: str, user_id: str) -> bool:
        with self.Session() as session:
            deleted = (
                session.query(PaymentMethodRow)
                .filter(
                    PaymentMethodRow.id == method_id,
                    PaymentMethodRow.user_id == user_id,
                )
                .delete(synchronize_session=False)
            )
            session.commit()
            return bool(deleted)

    def find_payment_method_by_card(
        self, user_id: str, last4: str, exp_month: int, exp_year: int
    ) -> Optional[SavedPaymentMethod]:
        with self.Session() as session:
            stmt = (
                select(PaymentMethodRow)
                .where(
                    PaymentMethodRow.user_id == user_id,
                    PaymentMethodRow.card_last4 == last4,
                    PaymentMethodRow.card_exp_month == exp_month,
                    PaymentMethodRow.card_exp_year == exp_year,
                )
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_payment_method(row) if row else None


Base = declarative_base()


class LocationRow(Base):
    __tablename__ = "location_updates"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    booking_id = Column(String, nullable=False, index=True)
    transporter_id = Column(String, nullable=False, index=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    heading = Column(Float, nullable=True)
    speed = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False, index=True)


class PaymentMethodRow(Base):
    __tablename__ = "saved_payment_methods"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    user_id = Column(String, nullable=False, index=True)
    stripe_payment_method_id = Column(String, nullable=True)
    card_brand = Column(String, nullable=True)
    card_last4 = Column(String, nullable=False)
    card_exp_month = Column(Integer, nullable=False)
    card_exp_year = Column(Integer, nullable=False)
    cardholder_name = Column(String, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
