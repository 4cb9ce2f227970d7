from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Hospital(Base):
    __tablename__ = "hospitals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="private")
    address: Mapped[str | None] = mapped_column(String(512))
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    state: Mapped[str | None] = mapped_column(String(128))
    country: Mapped[str] = mapped_column(String(64), nullable=False, default="India")
    pincode: Mapped[str | None] = mapped_column(String(10))
    latitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    longitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    phone: Mapped[str | None] = mapped_column(String(64))
    email: Mapped[str | None] = mapped_column(String(255))
    website: Mapped[str | None] = mapped_column(String(255))
    rating: Mapped[Decimal | None] = mapped_column(Numeric(2, 1))
    emergency_services: Mapped[bool | None] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now(), nullable=False)

    specialties: Mapped[list[HospitalSpecialty]] = relationship(
        "HospitalSpecialty", back_populates="hospital", cascade="all, delete-orphan"
    )
    doctors: Mapped[list[Doctor]] = relationship("Doctor", back_populates="hospital")

    __table_args__ = (
        Index("ix_hospitals_city", "city"),
        Index("ix_hospitals_state", "state"),
        Index("ix_hospitals_lat_lng", "latitude", "longitude"),
        CheckConstraint("rating IS NULL OR (rating >= 0 AND rating <= 5)", name="ck_hospitals_rating_range"),
    )


class HospitalSpecialty(Base):
    __tablename__ = "hospital_specialties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    hospital_id: Mapped[int] = mapped_column(ForeignKey("hospitals.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)

    hospital: Mapped[Hospital] = relationship("Hospital", back_populates="specialties")

    __table_args__ = (
        UniqueConstraint("hospital_id", "name", name="uq_hospital_specialties_name"),
    )


class Doctor(Base):
    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    specialization: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    designation: Mapped[str | None] = mapped_column(String(128))
    experience_years: Mapped[int | None] = mapped_column(Integer)
    rating: Mapped[Decimal | None] = mapped_column(Numeric(2, 1))
    consultation_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    # Own location; the hospital's is used where these are missing
    city: Mapped[str | None] = mapped_column(String(128))
    state: Mapped[str | None] = mapped_column(String(128))
    latitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    longitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    hospital_id: Mapped[int | None] = mapped_column(ForeignKey("hospitals.id", ondelete="SET NULL"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now(), nullable=False)

    hospital: Mapped[Hospital | None] = relationship("Hospital", back_populates="doctors")

    __table_args__ = (
        Index("ix_doctors_city", "city"),
        CheckConstraint("rating IS NULL OR (rating >= 0 AND rating <= 5)", name="ck_doctors_rating_range"),
    )
