from __future__ import annotations

import argparse
import asyncio

from fleetwatch.db.base import Base
from fleetwatch.db.session import AsyncSessionLocal, engine
from fleetwatch.models.entities import Vehicle
from fleetwatch.models.enums import FuelType, VehicleStatus, VehicleType

DEMO_VEHICLES = (
    {
        "id": "670000000000000000000001",
        "vin": "SIM1ABC123DEF4567",
        "license_plate": "DXB-SIM-001",
        "vehicle_model": "Transit Van",
        "manufacturer": "Ford",
        "year": 2022,
        "type": VehicleType.VAN,
        "fuel_type": FuelType.DIESEL,
    },
    {
        "id": "670000000000000000000002",
        "vin": "SIM2XYZ789GHI0123",
        "license_plate": "DXB-SIM-002",
        "vehicle_model": "Sprinter",
        "manufacturer": "Mercedes-Benz",
        "year": 2023,
        "type": VehicleType.VAN,
        "fuel_type": FuelType.DIESEL,
    },
    {
        "id": "670000000000000000000003",
        "vin": "SIM3LMN456OPQ7890",
        "license_plate": "DXB-SIM-003",
        "vehicle_model": "F-150",
        "manufacturer": "Ford",
        "year": 2021,
        "type": VehicleType.TRUCK,
        "fuel_type": FuelType.GASOLINE,
    },
)


async def bootstrap(seed_demo: bool) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if not seed_demo:
        print("Database ready. No demo vehicles created.")
        return

    created = 0
    async with AsyncSessionLocal() as session:
        for fields in DEMO_VEHICLES:
            if await session.get(Vehicle, fields["id"]) is not None:
                continue
            session.add(Vehicle(status=VehicleStatus.ACTIVE, **fields))
            created += 1
        await session.commit()

    print(f"Demo data ready! {created} vehicle(s) created.")
    for fields in DEMO_VEHICLES:
        print(f"  {fields['id']}  {fields['vin']}  {fields['license_plate']}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize database and optional demo vehicles.")
    parser.add_argument("--seed-demo", action="store_true", help="Seed demo vehicles for the simulator")
    args = parser.parse_args()
    asyncio.run(bootstrap(args.seed_demo))


if __name__ == "__main__":
    main()
