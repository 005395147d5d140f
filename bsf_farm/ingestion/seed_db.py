"""
Demo Farm Seeding

Generates a reproducible demo farm (staff, customers, product catalogue,
batches with their feeding/harvest/mortality logs, environment readings,
inventory, sales with payments and a batch performance report) and writes
it through the ORM in one transaction.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

import numpy as np
import structlog
from faker import Faker

from bsf_farm.config import get_settings
from bsf_farm.database.connection import get_db
from bsf_farm.database.models import (
    ActiveStatus,
    Batch,
    BatchStage,
    Customer,
    Environment,
    Feeding,
    Harvest,
    Inventory,
    InventoryStatus,
    Mortality,
    PaymentMethod,
    PaymentStatus,
    Product,
    ProductCategory,
    Report,
    ReportType,
    Sale,
    Staff,
    Transaction,
)

logger = structlog.get_logger(__name__)

PRODUCTS = [
    ("Live Larvae", "Fresh black soldier fly larvae for poultry and fish feed", 4.50, ProductCategory.LARVAE),
    ("Dried Larvae", "Sun-dried larvae, high protein", 9.00, ProductCategory.LARVAE),
    ("Frass Fertilizer", "Composted frass, sold in bulk", 1.20, ProductCategory.FRASS),
    ("Pupae", "Pupae for breeding stock", 12.00, ProductCategory.PUPAE),
    ("Starter Kit", "Bin, substrate and eggs for small growers", 25.00, ProductCategory.OTHER),
]

FEED_TYPES = ["Vegetable waste", "Brewery grain", "Fruit pulp", "Chicken feed", "Market waste"]
ROLES = ["Farm Manager", "Technician", "Feeder", "Sales Officer"]
LOCATIONS = ["Hatchery", "Larvae House", "Pupation Room", "Love Cage"]
INVENTORY_ITEMS = [
    ("Substrate bags", 120.0, 3.50),
    ("Egg traps", 40.0, 1.75),
    ("Harvest sieves", 6.0, 18.00),
    ("Rearing trays", 0.0, 7.25),
]


def _decimal(value: float) -> Decimal:
    """Round to the two decimal places every measure is stored with"""
    return Decimal(str(round(float(value), 2)))


class FarmGenerator:
    """
    Builds ORM objects for a demo farm.

    Every draw comes from a seeded Faker and numpy Generator, so the same
    random state always yields the same farm.
    """

    def __init__(self, random_state: int, start: Optional[date] = None):
        self.rng = np.random.default_rng(random_state)
        self.fake = Faker()
        self.fake.seed_instance(random_state)
        self.start = start or date(2024, 1, 1)

    def staff(self, n: int) -> List[Staff]:
        return [
            Staff(
                name=self.fake.name(),
                role=ROLES[i % len(ROLES)],
                contact=self.fake.numerify("+254 7## ### ###"),
                hire_date=self.start - timedelta(days=int(self.rng.integers(30, 900))),
                status=ActiveStatus.ACTIVE if i < n - 1 else ActiveStatus.INACTIVE,
            )
            for i in range(n)
        ]

    def customers(self, n: int) -> List[Customer]:
        return [
            Customer(
                name=self.fake.company(),
                contact_number=self.fake.numerify("+254 7## ### ###"),
                email=self.fake.unique.email(),
                address=self.fake.address(),
            )
            for _ in range(n)
        ]

    def products(self) -> List[Product]:
        return [
            Product(name=name, description=description, price=_decimal(price), category=category)
            for name, description, price, category in PRODUCTS
        ]

    def batch(self, index: int) -> Batch:
        """One batch with a feeding log, mortality checks and a harvest if it is past Larvae"""
        start_date = self.start + timedelta(days=7 * index)
        stage = list(BatchStage)[int(self.rng.integers(0, len(BatchStage)))]
        days = 21 if stage in (BatchStage.PUPAE, BatchStage.ADULT) else 10

        feedings = [
            Feeding(
                feed_date=start_date + timedelta(days=day),
                feed_type=FEED_TYPES[int(self.rng.integers(0, len(FEED_TYPES)))],
                feed_quantity_kg=_decimal(self.rng.uniform(5, 40)),
            )
            for day in range(0, days, 2)
        ]

        rates = np.sort(self.rng.uniform(0.5, 12.0, size=3))
        mortality = [
            Mortality(mortality_date=start_date + timedelta(days=7 * (i + 1)), mortality_rate=_decimal(rate))
            for i, rate in enumerate(rates)
        ]

        harvests = []
        if stage in (BatchStage.PUPAE, BatchStage.ADULT):
            harvests.append(
                Harvest(
                    harvest_date=start_date + timedelta(days=days),
                    larvae_weight_kg=_decimal(self.rng.uniform(40, 180)),
                    frass_weight_kg=_decimal(self.rng.uniform(20, 90)),
                )
            )

        return Batch(
            start_date=start_date,
            stage=stage,
            current_weight_kg=_decimal(self.rng.uniform(1, 200)),
            current_mortality=mortality[-1].mortality_rate,
            status=ActiveStatus.ACTIVE if stage != BatchStage.ADULT else ActiveStatus.INACTIVE,
            notes=self.fake.sentence(nb_words=8),
            feedings=feedings,
            harvests=harvests,
            mortality_records=mortality,
        )

    def environment(self, days: int) -> List[Environment]:
        readings = []
        for day in range(days):
            for location in LOCATIONS:
                readings.append(
                    Environment(
                        log_time=datetime.combine(self.start + timedelta(days=day), datetime.min.time())
                        + timedelta(hours=int(self.rng.integers(6, 18))),
                        temperature_c=_decimal(self.rng.normal(29, 2)),
                        humidity_percent=_decimal(np.clip(self.rng.normal(65, 8), 0, 100)),
                        location=location,
                    )
                )
        return readings

    def inventory(self) -> List[Inventory]:
        return [
            Inventory(
                item_name=name,
                quantity_available=_decimal(quantity),
                unit_price=_decimal(price),
                restock_date=self.start + timedelta(days=int(self.rng.integers(0, 60))),
                status=InventoryStatus.IN_STOCK if quantity > 0 else InventoryStatus.OUT_OF_STOCK,
            )
            for name, quantity, price in INVENTORY_ITEMS
        ]

    def sales(self, n: int, products: List[Product], customers: List[Customer]) -> List[Sale]:
        methods = list(PaymentMethod)
        sales = []
        for i in range(n):
            product = products[int(self.rng.integers(0, len(products)))]
            quantity = self.rng.uniform(1, 50)
            status = PaymentStatus.COMPLETED if self.rng.random() < 0.85 else PaymentStatus.PENDING
            sales.append(
                Sale(
                    sale_date=self.start + timedelta(days=int(self.rng.integers(14, 120))),
                    product=product,
                    customer=customers[int(self.rng.integers(0, len(customers)))],
                    quantity_kg=_decimal(quantity),
                    price_per_kg=product.price,
                    transactions=[
                        Transaction(
                            payment_method=methods[int(self.rng.integers(0, len(methods)))],
                            payment_status=status,
                        )
                    ],
                )
            )
        return sales

    def batch_report(self, batches: List[Batch], author: Staff) -> Report:
        """Batch performance snapshot computed from the generated logs"""
        data = {
            "batches": [
                {
                    "start_date": batch.start_date.isoformat(),
                    "stage": batch.stage.value,
                    "feed_kg": float(sum(f.feed_quantity_kg for f in batch.feedings)),
                    "larvae_kg": float(sum(h.larvae_weight_kg for h in batch.harvests)),
                    "mortality_percent": float(batch.current_mortality),
                }
                for batch in batches
            ],
        }
        data["total_larvae_kg"] = round(sum(b["larvae_kg"] for b in data["batches"]), 2)
        return Report(
            report_date=self.start + timedelta(days=120),
            report_type=ReportType.BATCH_PERFORMANCE,
            report_data=data,
            author=author,
        )


async def seed_database(
    random_state: Optional[int] = None,
    batches: int = 8,
    customers: int = 20,
    sales: int = 50,
    staff: int = 4,
    environment_days: int = 14,
) -> Dict[str, int]:
    """
    Populate the schema with a demo farm.

    Args:
        random_state: Seed for the generators; the configured one when omitted
        batches: Number of batches
        customers: Number of customers
        sales: Number of sales (each with one transaction)
        staff: Number of staff members
        environment_days: Days of environment readings per location

    Returns:
        Mapping of table name to rows inserted

    Raises:
        ValueError: If any count is below 1
    """
    sizes = {
        "batches": batches,
        "customers": customers,
        "sales": sales,
        "staff": staff,
        "environment_days": environment_days,
    }
    too_small = sorted(name for name, size in sizes.items() if size < 1)
    if too_small:
        raise ValueError(f"Seed counts must be at least 1: {', '.join(too_small)}")

    if random_state is None:
        random_state = get_settings().ingestion.seed_random_state

    logger.info("Starting database seeding...", random_state=random_state)
    generator = FarmGenerator(random_state)

    staff_members = generator.staff(staff)
    customer_rows = generator.customers(customers)
    product_rows = generator.products()
    batch_rows = [generator.batch(i) for i in range(batches)]
    environment_rows = generator.environment(environment_days)
    inventory_rows = generator.inventory()
    sale_rows = generator.sales(sales, product_rows, customer_rows)
    report = generator.batch_report(batch_rows, staff_members[0])

    async with get_db() as db:
        db.add_all(staff_members + customer_rows + product_rows + batch_rows)
        db.add_all(environment_rows + inventory_rows + sale_rows + [report])

    counts = {
        "staff": len(staff_members),
        "customers": len(customer_rows),
        "products": len(product_rows),
        "batches": len(batch_rows),
        "feedings": sum(len(b.feedings) for b in batch_rows),
        "harvests": sum(len(b.harvests) for b in batch_rows),
        "mortality": sum(len(b.mortality_records) for b in batch_rows),
        "environment": len(environment_rows),
        "inventory": len(inventory_rows),
        "sales": len(sale_rows),
        "transactions": sum(len(s.transactions) for s in sale_rows),
        "reports": 1,
    }
    logger.info("Database seeding completed", **counts)
    return counts
