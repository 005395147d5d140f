"""
Database Models - BSF Farm Schema

This module defines the relational schema of a Black Soldier Fly farming
operation. Constraint enforcement is left to the relational store: every
rule below is expressed as a column type, NOT NULL, UNIQUE, CHECK, generated
column or foreign-key clause so that a violating write is rejected at write
time.

Reference Tables:
- Customer: buyers of farm products
- Staff: farm employees, authors of reports
- Product: sellable catalogue (larvae, frass, pupae)

Production Tables:
- Batch: a cohort of insects moving through Egg -> Larvae -> Pupae -> Adult
- Feeding, Harvest, Mortality: append-only logs tied to a batch
- Environment: temperature/humidity readings

Commercial Tables:
- Sale: product sold to a customer, with a store-computed total
- Transaction: payment attempt for a sale
- Inventory: feed and supplies on hand

Analytics:
- Report: write-once JSON snapshot attributed to a staff member
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import (
    JSON,
    Computed,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from bsf_farm.exceptions import UnknownTableError


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models"""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ActiveStatus(str, Enum):
    """Staff and batch status"""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ProductCategory(str, Enum):
    """Product category enumeration"""
    LARVAE = "Larvae"
    FRASS = "Frass"
    PUPAE = "Pupae"
    OTHER = "Other"


class BatchStage(str, Enum):
    """Life stage of a batch"""
    EGG = "Egg"
    LARVAE = "Larvae"
    PUPAE = "Pupae"
    ADULT = "Adult"


class InventoryStatus(str, Enum):
    """Stock status enumeration"""
    IN_STOCK = "In Stock"
    OUT_OF_STOCK = "Out of Stock"
    PENDING = "Pending"


class PaymentMethod(str, Enum):
    """Payment method enumeration"""
    CASH = "Cash"
    CARD = "Card"
    TRANSFER = "Transfer"


class PaymentStatus(str, Enum):
    """Payment status enumeration"""
    COMPLETED = "Completed"
    PENDING = "Pending"
    FAILED = "Failed"


class ReportType(str, Enum):
    """Report type enumeration"""
    BATCH_PERFORMANCE = "Batch Performance"
    SALES = "Sales"
    INVENTORY = "Inventory"
    MORTALITY = "Mortality"


def enum_column(enum_cls: Type[Enum], name: str) -> SQLEnum:
    """
    Portable enumerated column type.

    Stored as VARCHAR holding the member values, guarded by a CHECK
    constraint named ``ck_<table>_<name>``. Unknown strings are passed through
    unchanged so the store, not the ORM, rejects them.
    """
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        validate_strings=False,
        values_callable=lambda members: [m.value for m in members],
    )


# =============================================================================
# REFERENCE TABLES
# =============================================================================

class Customer(Base):
    """
    Customer Table

    Buyers of larvae, frass and pupae. Deleting a customer deletes their sales.
    """
    __tablename__ = "customers"

    customer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_number: Mapped[Optional[str]] = mapped_column(String(20))
    email: Mapped[Optional[str]] = mapped_column(String(100), unique=True)
    address: Mapped[Optional[str]] = mapped_column(Text)
    registration_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime, server_default=func.now()
    )

    # Relationships
    sales: Mapped[List["Sale"]] = relationship(
        back_populates="customer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Staff(Base):
    """
    Staff Table

    Farm employees. Staff are deactivated rather than deleted once they have
    authored reports.
    """
    __tablename__ = "staff"

    staff_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    contact: Mapped[Optional[str]] = mapped_column(String(20))
    hire_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[Optional[ActiveStatus]] = mapped_column(
        enum_column(ActiveStatus, "status"), server_default=ActiveStatus.ACTIVE.value
    )

    # Relationships
    reports: Mapped[List["Report"]] = relationship(
        back_populates="author", passive_deletes="all"
    )


class Product(Base):
    """
    Product Table

    Sellable catalogue. Products referenced by a sale cannot be deleted.
    """
    __tablename__ = "products"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category: Mapped[ProductCategory] = mapped_column(
        enum_column(ProductCategory, "category"), nullable=False
    )

    # Relationships
    sales: Mapped[List["Sale"]] = relationship(
        back_populates="product", passive_deletes="all"
    )


# =============================================================================
# PRODUCTION TABLES
# =============================================================================

class Batch(Base):
    """
    Batch Table

    A cohort of insects raised together. Root of the feeding, harvest and
    mortality logs, which are deleted with it.
    """
    __tablename__ = "batches"

    batch_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    stage: Mapped[BatchStage] = mapped_column(
        enum_column(BatchStage, "stage"), nullable=False
    )
    current_weight_kg: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))
    current_mortality: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), server_default=text("0")
    )  # Percentage
    status: Mapped[Optional[ActiveStatus]] = mapped_column(
        enum_column(ActiveStatus, "status"), server_default=ActiveStatus.ACTIVE.value
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    feedings: Mapped[List["Feeding"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    harvests: Mapped[List["Harvest"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    mortality_records: Mapped[List["Mortality"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_batches_stage", "stage"),
        Index("ix_batches_status", "status"),
    )


class Feeding(Base):
    """
    Feeding Table

    One feeding event for a batch.
    """
    __tablename__ = "feedings"

    feeding_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("batches.batch_id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    feed_date: Mapped[date] = mapped_column(Date, nullable=False)
    feed_type: Mapped[str] = mapped_column(String(100), nullable=False)
    feed_quantity_kg: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    batch: Mapped["Batch"] = relationship(back_populates="feedings")

    __table_args__ = (
        Index("ix_feedings_batch", "batch_id"),
        Index("ix_feedings_date", "feed_date"),
    )


class Harvest(Base):
    """
    Harvest Table

    Larvae and frass weights removed from a batch in one harvest.
    """
    __tablename__ = "harvests"

    harvest_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("batches.batch_id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    harvest_date: Mapped[date] = mapped_column(Date, nullable=False)
    larvae_weight_kg: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    frass_weight_kg: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))

    batch: Mapped["Batch"] = relationship(back_populates="harvests")

    __table_args__ = (
        Index("ix_harvests_batch", "batch_id"),
        Index("ix_harvests_date", "harvest_date"),
    )


class Mortality(Base):
    """
    Mortality Table

    Dated mortality-rate observation (percentage) for a batch.
    """
    __tablename__ = "mortality"

    mortality_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("batches.batch_id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    mortality_date: Mapped[date] = mapped_column(Date, nullable=False)
    mortality_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)  # Percentage

    batch: Mapped["Batch"] = relationship(back_populates="mortality_records")

    __table_args__ = (
        Index("ix_mortality_batch", "batch_id"),
        Index("ix_mortality_date", "mortality_date"),
    )


class Environment(Base):
    """
    Environment Table

    Temperature and humidity reading, optionally tagged with a location.
    """
    __tablename__ = "environment"

    environment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    log_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    temperature_c: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    humidity_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(100))

    __table_args__ = (
        Index("ix_environment_log_time", "log_time"),
        Index("ix_environment_location", "location"),
    )


# =============================================================================
# COMMERCIAL TABLES
# =============================================================================

class Sale(Base):
    """
    Sale Table

    One product sold to one customer. total_amount is a stored generated
    column (quantity_kg * price_per_kg) maintained by the store.
    """
    __tablename__ = "sales"

    sale_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.product_id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity_kg: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    price_per_kg: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    total_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), Computed("quantity_kg * price_per_kg", persisted=True)
    )
    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.customer_id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )

    # Relationships
    product: Mapped["Product"] = relationship(back_populates="sales")
    customer: Mapped["Customer"] = relationship(back_populates="sales")
    transactions: Mapped[List["Transaction"]] = relationship(
        back_populates="sale", passive_deletes="all"
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        Index("ix_sales_product", "product_id"),
        Index("ix_sales_customer", "customer_id"),
        Index("ix_sales_date", "sale_date"),
    )

    @validates("total_amount")
    def _reject_total_amount(self, key: str, value: Any) -> Any:
        raise ValueError("total_amount is derived from quantity_kg * price_per_kg and cannot be set")


class Transaction(Base):
    """
    Transaction Table

    Payment attempt for a sale. A sale with transactions cannot be deleted.
    """
    __tablename__ = "transactions"

    transaction_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sale_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("sales.sale_id", ondelete="RESTRICT"),
        nullable=False,
    )
    transaction_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime, server_default=func.now()
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        enum_column(PaymentMethod, "payment_method"), nullable=False
    )
    payment_status: Mapped[Optional[PaymentStatus]] = mapped_column(
        enum_column(PaymentStatus, "payment_status"),
        server_default=PaymentStatus.COMPLETED.value,
    )

    sale: Mapped["Sale"] = relationship(back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_sale", "sale_id"),
        Index("ix_transactions_status", "payment_status"),
    )


class Inventory(Base):
    """
    Inventory Table

    Feed and supplies on hand.
    """
    __tablename__ = "inventory"

    inventory_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_name: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_available: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2))
    restock_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[Optional[InventoryStatus]] = mapped_column(
        enum_column(InventoryStatus, "status"),
        server_default=InventoryStatus.IN_STOCK.value,
    )

    __table_args__ = (
        Index("ix_inventory_status", "status"),
    )


# =============================================================================
# ANALYTICS
# =============================================================================

class Report(Base):
    """
    Report Table

    Write-once analytics snapshot. report_data is free-form JSON.
    """
    __tablename__ = "reports"

    report_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    report_date: Mapped[date] = mapped_column(Date, nullable=False)
    report_type: Mapped[ReportType] = mapped_column(
        enum_column(ReportType, "report_type"), nullable=False
    )
    report_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql")
    )
    generated_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("staff.staff_id", ondelete="RESTRICT")
    )

    author: Mapped[Optional["Staff"]] = relationship(back_populates="reports")

    __table_args__ = (
        Index("ix_reports_date_type", "report_date", "report_type"),
        Index("ix_reports_generated_by", "generated_by"),
    )


def get_table(name: str) -> Table:
    """Look up a schema table by name."""
    try:
        return Base.metadata.tables[name]
    except KeyError:
        raise UnknownTableError(name) from None
