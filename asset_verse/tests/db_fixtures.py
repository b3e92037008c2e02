import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path


os.environ.setdefault("ASSET_VERSE_DB_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("IDENTITY_SIGNING_SECRET", "x" * 48)

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from db.base import Base
from db.engine import build_engine, build_sessionmaker
from models.asset_models import NON_RETURNABLE_TYPE, RETURNABLE_TYPE, ROLE_HR, ROLE_USER, Asset, User
from schemas.requests import CreateAssetRequestDto
from services import request_lifecycle


HR_EMAIL = "hr@acme.test"
EMPLOYEE_EMAIL = "alex@acme.test"


class SqliteDatabase:
    """File-backed SQLite so several sessions can see each other's commits."""

    def __init__(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        url = f"sqlite+pysqlite:///{Path(self._tmpdir.name) / 'asset_verse.db'}"
        self.engine = build_engine(url)
        Base.metadata.create_all(self.engine)
        self._factory = build_sessionmaker(self.engine)
        self._sessions = []

    def session(self):
        db = self._factory()
        self._sessions.append(db)
        return db

    def close(self):
        for db in self._sessions:
            db.close()
        self.engine.dispose()
        self._tmpdir.cleanup()


def add_user(db, email=EMPLOYEE_EMAIL, name="Alex", role=ROLE_USER, package_limit=0, company=None):
    user = User(
        Email=email,
        DisplayName=name,
        PhotoURL=f"https://img.test/{name.lower()}.png",
        Role=role,
        Subscription="free" if role == ROLE_HR else None,
        PackageLimit=package_limit,
        CompanyName=company,
        CreatedAt=datetime.now(),
        UpdatedAt=datetime.now(),
    )
    db.add(user)
    db.commit()
    return user


def add_hr(db, email=HR_EMAIL, package_limit=5, company="Acme"):
    return add_user(db, email=email, name="Hana", role=ROLE_HR, package_limit=package_limit, company=company)


def add_asset(db, quantity=5, available=None, returnable=True, hr_email=HR_EMAIL, name="Laptop"):
    asset = Asset(
        ProductName=name,
        ProductImage="",
        ProductType=RETURNABLE_TYPE if returnable else NON_RETURNABLE_TYPE,
        ProductQuantity=quantity,
        AvailableQuantity=quantity if available is None else available,
        HREmail=hr_email,
        CompanyName="Acme",
        DateAdded=datetime.now(),
        UpdatedDate=datetime.now(),
    )
    db.add(asset)
    db.commit()
    return asset


def make_request(db, asset, quantity=1, employee_email=EMPLOYEE_EMAIL, employee_name="Alex", note=None):
    payload = CreateAssetRequestDto(
        assetId=asset.AssetID,
        assetQTY=quantity,
        requesterEmail=employee_email,
        requesterName=employee_name,
        hrEmail=asset.HREmail,
        companyName="Acme",
        note=note,
    )
    return request_lifecycle.create_request(db, employee_email, payload)
