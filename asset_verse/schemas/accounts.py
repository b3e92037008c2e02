from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: str = Field(min_length=3)
    displayName: Optional[str] = None
    photoURL: Optional[str] = None


class RegisterHrRequest(RegisterUserRequest):
    companyName: Optional[str] = None
    companyLogo: Optional[str] = None


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    packageId: int
