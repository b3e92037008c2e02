from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssetCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    productName: str = Field(min_length=1)
    productImage: Optional[str] = None
    productType: Literal["Returnable", "Non-returnable"] = "Returnable"
    productQuantity: int = Field(default=0, ge=0)
    companyName: Optional[str] = None


class AssetUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    productName: Optional[str] = None
    productImage: Optional[str] = None
    productType: Optional[Literal["Returnable", "Non-returnable"]] = None
    productQuantity: Optional[int] = Field(default=None, ge=0)
