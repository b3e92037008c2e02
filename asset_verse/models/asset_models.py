from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from db.base import Base


RETURNABLE_TYPE = "Returnable"
NON_RETURNABLE_TYPE = "Non-returnable"

ROLE_USER = "user"
ROLE_HR = "hr"

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_REJECTED = "rejected"
REQUEST_ASSIGNED = "assigned"
REQUEST_RETURNED = "returned"
REQUEST_COMPLETED = "completed"
REQUEST_STATUSES = {
    REQUEST_PENDING,
    REQUEST_APPROVED,
    REQUEST_REJECTED,
    REQUEST_ASSIGNED,
    REQUEST_RETURNED,
    REQUEST_COMPLETED,
}
REQUEST_TERMINAL_STATUSES = {REQUEST_REJECTED, REQUEST_RETURNED, REQUEST_COMPLETED}
REQUEST_OPEN_STATUSES = {REQUEST_PENDING, REQUEST_APPROVED, REQUEST_ASSIGNED}

ASSIGNMENT_ASSIGNED = "assigned"
ASSIGNMENT_RETURNED = "returned"

AFFILIATION_ACTIVE = "active"
AFFILIATION_INACTIVE = "inactive"


class User(Base):
    __tablename__ = "Users"
    __table_args__ = (
        CheckConstraint('"PackageLimit" >= 0', name="ck_users_package_limit_non_negative"),
    )

    UserID = Column(Integer, primary_key=True)
    Email = Column(String(255), nullable=False, unique=True)
    DisplayName = Column(String(255))
    PhotoURL = Column(String(1000))
    Role = Column(String(20), nullable=False, default=ROLE_USER)
    Subscription = Column(String(50))
    PackageLimit = Column(Integer, nullable=False, default=0)
    CompanyName = Column(String(255))
    CompanyLogo = Column(String(1000))
    CreatedAt = Column(DateTime, server_default=func.now())
    UpdatedAt = Column(DateTime, server_default=func.now())


class Asset(Base):
    __tablename__ = "Assets"
    __table_args__ = (
        CheckConstraint(
            '"AvailableQuantity" >= 0 AND "AvailableQuantity" <= "ProductQuantity"',
            name="ck_assets_available_range",
        ),
    )

    AssetID = Column(Integer, primary_key=True)
    ProductName = Column(String(255), nullable=False)
    ProductImage = Column(String(1000))
    ProductType = Column(String(50), nullable=False, default=RETURNABLE_TYPE)
    ProductQuantity = Column(Integer, nullable=False, default=0)
    AvailableQuantity = Column(Integer, nullable=False, default=0)
    HREmail = Column(String(255), nullable=False, index=True)
    CompanyName = Column(String(255))
    DateAdded = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())

    Requests = relationship("AssetRequest", back_populates="Asset", passive_deletes=True)
    Assignments = relationship("AssignedAsset", back_populates="Asset", passive_deletes=True)


class AssetRequest(Base):
    __tablename__ = "Requests"

    RequestID = Column(Integer, primary_key=True)
    AssetID = Column(Integer, ForeignKey("Assets.AssetID", ondelete="SET NULL"), index=True)
    AssetName = Column(String(255))
    AssetImage = Column(String(1000))
    AssetType = Column(String(50))
    AssetQuantity = Column(Integer, nullable=False, default=1)
    EmployeeEmail = Column(String(255), nullable=False, index=True)
    EmployeeName = Column(String(255))
    HREmail = Column(String(255), nullable=False, index=True)
    CompanyName = Column(String(255))
    CompanyLogo = Column(String(1000))
    RequestStatus = Column(String(20), nullable=False, default=REQUEST_PENDING)
    Note = Column(String(1000))
    CreatedAt = Column(DateTime, server_default=func.now())
    ApprovalDate = Column(DateTime)
    ProcessedBy = Column(String(255))
    AssignedEmployeeEmail = Column(String(255))
    AssignedEmployeeName = Column(String(255))
    AssignedAt = Column(DateTime)
    UpdatedAt = Column(DateTime, server_default=func.now())

    Asset = relationship("Asset", back_populates="Requests")


class AssignedAsset(Base):
    __tablename__ = "AssignedAssets"

    AssignmentID = Column(Integer, primary_key=True)
    AssetID = Column(Integer, ForeignKey("Assets.AssetID", ondelete="SET NULL"), index=True)
    RequestID = Column(Integer, ForeignKey("Requests.RequestID", ondelete="SET NULL"), index=True)
    AssetName = Column(String(255))
    AssetImage = Column(String(1000))
    AssetType = Column(String(50))
    AssetQuantity = Column(Integer, nullable=False, default=1)
    EmployeeEmail = Column(String(255), nullable=False, index=True)
    EmployeeName = Column(String(255))
    HREmail = Column(String(255), nullable=False, index=True)
    CompanyName = Column(String(255))
    CompanyLogo = Column(String(1000))
    RequestDate = Column(DateTime)
    ApprovalDate = Column(DateTime)
    AssignmentDate = Column(DateTime)
    ReturnDate = Column(DateTime)
    Status = Column(String(20), nullable=False, default=ASSIGNMENT_ASSIGNED)

    Asset = relationship("Asset", back_populates="Assignments")


class EmployeeAffiliation(Base):
    __tablename__ = "EmployeeAffiliations"
    __table_args__ = (
        Index(
            "uq_affiliations_active_pair",
            "EmployeeEmail",
            "HREmail",
            unique=True,
            sqlite_where=text("\"Status\" = 'active'"),
            postgresql_where=text("\"Status\" = 'active'"),
        ),
    )

    AffiliationID = Column(Integer, primary_key=True)
    EmployeeEmail = Column(String(255), nullable=False)
    EmployeeName = Column(String(255))
    EmployeePhoto = Column(String(1000))
    HREmail = Column(String(255), nullable=False, index=True)
    CompanyName = Column(String(255))
    CompanyLogo = Column(String(1000))
    AffiliationDate = Column(DateTime)
    Status = Column(String(20), nullable=False, default=AFFILIATION_ACTIVE)
    RemovedAt = Column(DateTime)
    RemovedBy = Column(String(255))


class Package(Base):
    __tablename__ = "Packages"

    PackageID = Column(Integer, primary_key=True)
    Name = Column(String(100), nullable=False, unique=True)
    EmployeeLimit = Column(Integer, nullable=False)
    Price = Column(Numeric(10, 2), nullable=False)
    Features = Column(String(2000))


class Payment(Base):
    __tablename__ = "Payments"

    PaymentID = Column(Integer, primary_key=True)
    HREmail = Column(String(255), nullable=False, index=True)
    PackageName = Column(String(100))
    EmployeeLimit = Column(Integer, nullable=False)
    Amount = Column(Numeric(10, 2))
    TransactionID = Column(String(255), nullable=False, unique=True)
    PaymentDate = Column(DateTime)
    Status = Column(String(20), nullable=False, default="completed")


class AuditLog(Base):
    __tablename__ = "AuditLogs"

    AuditID = Column(Integer, primary_key=True)
    EntityType = Column(String(50), nullable=False)
    EntityID = Column(Integer, nullable=False)
    Action = Column(String(100), nullable=False)
    Details = Column(String(2000))
    ActorEmail = Column(String(255))
    CreatedAt = Column(DateTime, server_default=func.now())
