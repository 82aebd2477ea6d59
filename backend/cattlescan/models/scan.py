import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import CHAR, TypeDecorator

Base = declarative_base()


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value if dialect.name == "postgresql" else str(value)
        if isinstance(value, str):
            try:
                parsed = uuid.UUID(value)
            except ValueError:
                return value
            return parsed if dialect.name == "postgresql" else str(parsed)
        return value

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(value)
        except ValueError:
            return value


UUID_TYPE = GUID()
JSON_TYPE = JSON().with_variant(JSONB, "postgresql")


class Breed(Base):
    __tablename__ = "breeds"

    id = Column(
        UUID_TYPE,
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    name = Column(String(128), nullable=False, unique=True)
    species = Column(String(16), nullable=False, default="Cattle", server_default=text("'Cattle'"))
    origin = Column(String(255))
    status = Column(String(32))
    description = Column(Text)
    key_characteristics = Column(JSON_TYPE)
    native_region = Column(String(255))
    avg_milk_yield_min = Column(Numeric(10, 2))
    avg_milk_yield_max = Column(Numeric(10, 2))
    milk_yield_unit = Column(String(32))
    avg_body_weight_min = Column(Numeric(10, 2))
    avg_body_weight_max = Column(Numeric(10, 2))
    body_weight_unit = Column(String(32))
    adaptability = Column(Text)
    temperament = Column(String(32))
    conservation_status = Column(String(32))
    stock_img_url = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("species IN ('Cattle', 'Buffalo')", name="chk_breeds_species"),
        Index("idx_breeds_species", "species"),
    )


class CattleScan(Base):
    __tablename__ = "cattle_scans"

    id = Column(
        UUID_TYPE,
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    image_url = Column(Text, nullable=False)
    predictions = Column(JSON_TYPE, nullable=False)
    image_metadata = Column(JSON_TYPE)
    location = Column(JSON_TYPE)
    scanned_by_user_id = Column(String(64))
    is_helpful = Column(Boolean)
    reviewed_by_user_id = Column(String(64))
    is_flagged = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    flag_reason = Column(Text)
    flagged_by_user_id = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    predicted_breeds = relationship(
        "PredictedBreed",
        back_populates="scan",
        cascade="all, delete-orphan",
        order_by="PredictedBreed.rank",
    )

    __table_args__ = (
        CheckConstraint("image_url <> ''", name="chk_cattle_scans_image_url"),
        Index("idx_cattle_scans_created", "created_at"),
        Index("idx_cattle_scans_user", "scanned_by_user_id"),
    )


class PredictedBreed(Base):
    __tablename__ = "predicted_breeds"

    id = Column(
        UUID_TYPE,
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    scan_id = Column(UUID_TYPE, ForeignKey("cattle_scans.id", ondelete="CASCADE"), nullable=False)
    breed_id = Column(UUID_TYPE, ForeignKey("breeds.id"))
    label = Column(String(128), nullable=False)
    percentage = Column(Integer, nullable=False)
    # Position in the classifier output; JSONB does not keep key order.
    rank = Column(Integer, nullable=False, default=0, server_default=text("0"))

    scan = relationship("CattleScan", back_populates="predicted_breeds")

    __table_args__ = (
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="chk_predicted_breeds_percentage"),
        Index("idx_predicted_breeds_scan", "scan_id"),
    )


class ConfirmedCattleBreed(Base):
    __tablename__ = "confirmed_cattle_breeds"

    id = Column(
        UUID_TYPE,
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    scan_id = Column(UUID_TYPE, ForeignKey("cattle_scans.id"))
    breed_id = Column(UUID_TYPE, ForeignKey("breeds.id"), nullable=False)
    image_url = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    breed = relationship("Breed")
    scan = relationship("CattleScan")

    __table_args__ = (
        Index("idx_confirmed_breed_created", "breed_id", "created_at"),
    )
