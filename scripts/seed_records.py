"""Insert a code/owner/vehicle fixture for manual end-to-end testing."""

import argparse

from avahanaa.common.config import settings
from avahanaa.common.db import create_session_factory
from avahanaa.services.notify.models import Owner, QrCode, Vehicle


def main() -> None:
    """Parse CLI args and upsert one linked code, owner and vehicle."""

    parser = argparse.ArgumentParser(description="Seed one QR code linked to an owner.")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--code-id", default="demo-code-1")
    parser.add_argument("--owner-id", default="demo-owner-1")
    parser.add_argument("--vehicle-id", default="")
    parser.add_argument("--token", required=True, help="Device push registration token")
    args = parser.parse_args()

    session_factory = create_session_factory(args.database_url)
    with session_factory() as db:
        db.merge(Owner(owner_id=args.owner_id, destination_token=args.token, notifications_enabled=True))
        if args.vehicle_id:
            db.merge(
                Vehicle(owner_id=args.owner_id, vehicle_id=args.vehicle_id, active=True, notifications_enabled=True)
            )
        db.merge(
            QrCode(
                code_id=args.code_id,
                owner_id=args.owner_id,
                vehicle_id=args.vehicle_id or None,
                metadata_={},
                active=True,
            )
        )
        db.commit()
    print(f"Seeded code_id={args.code_id} owner_id={args.owner_id}")


if __name__ == "__main__":
    main()
