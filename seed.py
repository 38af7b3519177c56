"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 12 pricing rows (autos, cars, a mini bus; one-way and return)
  - 6 approved vehicles with their pricing snapshots resolved
"""

import asyncio

from sqlalchemy import text

from chalo.domain.entities import DistanceRates, PricingReference, Vehicle
from chalo.domain.enums import ApprovalStatus, FareTripType, VehicleCategory
from chalo.domain.pricing import PricingEntry, PricingTable
from chalo.infrastructure.database import async_session_factory, engine
from chalo.infrastructure.repositories import PricingRepository, VehicleRepository

ONE_WAY, RETURN = FareTripType.ONE_WAY, FareTripType.RETURN


def _auto(vehicle_type, model, trip_type, price):
    return PricingEntry(
        category=VehicleCategory.AUTO,
        vehicle_type=vehicle_type,
        vehicle_model=model,
        trip_type=trip_type,
        auto_price=price,
        is_default=True,
    )


def _distance(category, vehicle_type, model, trip_type, r50, r100, r150):
    return PricingEntry(
        category=category,
        vehicle_type=vehicle_type,
        vehicle_model=model,
        trip_type=trip_type,
        rates=DistanceRates(rate_50km=r50, rate_100km=r100, rate_150km=r150),
        is_default=True,
    )


PRICING = [
    _auto("Fuel Auto-Ricksaw", "Standard", ONE_WAY, 200),
    _auto("Fuel Auto-Ricksaw", "Standard", RETURN, 350),
    _auto("Electric Auto-Ricksaw", "Standard", ONE_WAY, 250),
    _auto("Electric Auto-Ricksaw", "Standard", RETURN, 400),
    _distance(VehicleCategory.CAR, "Sedan", "Honda Amaze", ONE_WAY, 16, 15, 14),
    _distance(VehicleCategory.CAR, "Sedan", "Honda Amaze", RETURN, 16, 15, 14),
    _distance(VehicleCategory.CAR, "Hatchback", "Swift", ONE_WAY, 14, 13, 12),
    _distance(VehicleCategory.CAR, "Hatchback", "Swift", RETURN, 14, 13, 12),
    _distance(VehicleCategory.CAR, "SUV", "Innova Crysta", ONE_WAY, 24, 22, 20),
    _distance(VehicleCategory.CAR, "SUV", "Innova Crysta", RETURN, 24, 22, 20),
    _distance(VehicleCategory.BUS, "Mini Bus", "Tempo Traveller", ONE_WAY, 40, 36, 32),
    _distance(VehicleCategory.BUS, "Mini Bus", "Tempo Traveller", RETURN, 40, 36, 32),
]

VEHICLES = [
    # (driver_id, category, vehicle type, brand, model)
    (101, VehicleCategory.AUTO, "Fuel Auto-Ricksaw", "Bajaj", "Standard"),
    (102, VehicleCategory.AUTO, "Electric Auto-Ricksaw", "Mahindra", "Standard"),
    (103, VehicleCategory.CAR, "Sedan", "Honda", "Honda Amaze"),
    (104, VehicleCategory.CAR, "Hatchback", "Maruti", "Swift"),
    (105, VehicleCategory.CAR, "SUV", "Toyota", "Innova Crysta"),
    (106, VehicleCategory.BUS, "Mini Bus", "Force", "Tempo Traveller"),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM vehicle_pricing"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Pricing table ─────────────────────────────────────────────
        pricing = PricingRepository(session)
        for entry in PRICING:
            await pricing.upsert(entry, notes="Seeded default pricing")
        print(f"  Created {len(PRICING)} pricing rows")

        # ── Vehicles ──────────────────────────────────────────────────
        table = PricingTable(PRICING)
        vehicles = VehicleRepository(session)
        for driver_id, category, vehicle_type, brand, model in VEHICLES:
            reference = PricingReference(category, vehicle_type, model)
            await vehicles.add(
                Vehicle(
                    driver_id=driver_id,
                    category=category,
                    vehicle_type=vehicle_type,
                    brand=brand,
                    model=model,
                    pricing_reference=reference,
                    pricing=table.resolve(reference),
                    is_verified=True,
                    approval_status=ApprovalStatus.APPROVED,
                )
            )
        print(f"  Created {len(VEHICLES)} vehicles")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
