"""
Test Suite Configuration
"""
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import polars as pl
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from bsf_farm.config import Settings
from bsf_farm.database.connection import close_database, create_schema, get_db, init_database
from bsf_farm.database.models import Customer, Product, ProductCategory


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database with the full schema for each test"""
    engine = await init_database(f"sqlite+aiosqlite:///{tmp_path / 'bsf_farm.db'}")
    await create_schema()

    yield engine

    await close_database()


@pytest.fixture
async def customer_and_product(db_engine):
    """A customer and a product to attach sales to"""
    async with get_db() as db:
        customer = Customer(name="Green Poultry Ltd", email="orders@greenpoultry.example")
        product = Product(name="Live Larvae", price=Decimal("4.50"), category=ProductCategory.LARVAE)
        db.add_all([customer, product])
    return customer, product


@pytest.fixture
def sample_batches_df() -> pl.DataFrame:
    """Create sample batches DataFrame for testing"""
    return pl.DataFrame({
        "start_date": [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)],
        "stage": ["Egg", "Larvae", "Pupae"],
        "current_weight_kg": [1.5, 42.25, 130.0],
        "current_mortality": [0.0, 3.5, 7.25],
        "status": ["Active", "Active", "Inactive"],
    })


@pytest.fixture
def sample_customers_df() -> pl.DataFrame:
    """Create sample customers DataFrame for testing"""
    return pl.DataFrame({
        "name": ["Green Poultry Ltd", "Lakeside Fish Farm", "Urban Growers"],
        "contact_number": ["+254 711 000 001", "+254 711 000 002", None],
        "email": ["orders@greenpoultry.example", "buy@lakeside.example", None],
        "address": ["Thika Road", "Kisumu", "Nairobi"],
    })
