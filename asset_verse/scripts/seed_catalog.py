#!/usr/bin/env python3
"""Create the AssetVerse schema, seed subscription packages and bootstrap HR accounts."""

from __future__ import annotations

import argparse
import os
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from sqlalchemy import select, update
from sqlalchemy.orm import Session

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from db.base import Base
from db.engine import build_engine, build_sessionmaker
from db.upsert import insert_if_absent
from models.asset_models import ROLE_HR, Package, User


DEFAULT_PACKAGES = [
    {
        "Name": "Basic",
        "EmployeeLimit": 5,
        "Price": Decimal("5.00"),
        "Features": "Asset Tracking\nEmployee Management\nBasic Support",
    },
    {
        "Name": "Standard",
        "EmployeeLimit": 10,
        "Price": Decimal("8.00"),
        "Features": "All Basic features\nAdvanced Analytics\nPriority Support",
    },
    {
        "Name": "Premium",
        "EmployeeLimit": 20,
        "Price": Decimal("15.00"),
        "Features": "All Standard features\nCustom Branding\n24/7 Support",
    },
]


def seed_packages(db: Session, packages: list[dict] | None = None) -> int:
    """Insert missing packages; existing names keep their current price and limit."""
    inserted = 0
    for values in packages or DEFAULT_PACKAGES:
        if insert_if_absent(db, Package.__table__, dict(values)):
            inserted += 1
    db.commit()
    return inserted


def upsert_hr_account(
    db: Session,
    email: str,
    package_limit: int,
    company_name: str | None = None,
    display_name: str | None = None,
) -> User:
    now = datetime.now()
    created = insert_if_absent(
        db,
        User.__table__,
        {
            "Email": email,
            "DisplayName": display_name or "HR",
            "PhotoURL": "",
            "Role": ROLE_HR,
            "Subscription": "free",
            "PackageLimit": package_limit,
            "CompanyName": company_name,
            "CompanyLogo": "",
            "CreatedAt": now,
            "UpdatedAt": now,
        },
    )
    if not created:
        # PackageLimit only moves through the credit ledger.
        values = {"Role": ROLE_HR, "UpdatedAt": now}
        if company_name:
            values["CompanyName"] = company_name
        db.execute(update(User).where(User.Email == email).values(**values))
    db.commit()
    return db.execute(
        select(User).where(User.Email == email).execution_options(populate_existing=True)
    ).scalars().one()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prepare an AssetVerse database from the terminal.",
    )
    parser.add_argument("--init-db", action="store_true", help="Create any missing tables.")
    parser.add_argument("--skip-packages", action="store_true", help="Do not seed the default packages.")
    parser.add_argument("--hr-email", default=None, help="Create or update this HR account.")
    parser.add_argument("--hr-company", default=None, help="CompanyName for --hr-email.")
    parser.add_argument("--package-limit", type=int, default=5, help="Starting PackageLimit when --hr-email is created.")
    parser.add_argument(
        "--issue-token",
        metavar="EMAIL",
        default=None,
        help="Print a bearer token for EMAIL; needs IDENTITY_SIGNING_SECRET.",
    )
    parser.add_argument(
        "--db-url",
        default=os.environ.get("ASSET_VERSE_DB_URL", "").strip(),
        help="SQLAlchemy DB URL; defaults to ASSET_VERSE_DB_URL env var.",
    )
    return parser


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    if not args.db_url:
        parser.error("Missing DB URL. Set ASSET_VERSE_DB_URL or pass --db-url.")
    if args.package_limit < 0:
        parser.error("--package-limit must be >= 0")

    engine = build_engine(args.db_url)
    if args.init_db:
        Base.metadata.create_all(engine)
        print("OK schema ready")

    session_factory = build_sessionmaker(engine)
    with session_factory() as db:
        if not args.skip_packages:
            inserted = seed_packages(db)
            print(f"OK packages inserted={inserted}")
        if args.hr_email:
            user = upsert_hr_account(db, args.hr_email.strip(), args.package_limit, args.hr_company)
            print(f"OK hr={user.Email} package_limit={user.PackageLimit} subscription={user.Subscription}")

    if args.issue_token:
        from services.identity_service import issue_token

        print(issue_token(args.issue_token.strip()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
