from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateAssetRequestDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    assetId: int | str
    assetQTY: int = 1
    requesterEmail: str
    requesterName: Optional[str] = None
    hrEmail: Optional[str] = None
    companyName: Optional[str] = None
    companyLogo: Optional[str] = None
    note: Optional[str] = None


class DecisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    decision: str


class AssignRequestDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    employeeEmail: Optional[str] = None
    employeeName: Optional[str] = None


class StatusChangeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    requestStatus: str = Field(min_length=1)


class RemoveEmployeeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    employeeEmail: str = Field(min_length=1)
