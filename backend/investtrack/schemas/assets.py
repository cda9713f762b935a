from pydantic import BaseModel, Field

from investtrack.models.enums import AssetCategory
from investtrack.schemas.common import ORMModel


class AssetWriteRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    category: AssetCategory
    ticker: str | None = Field(default=None, max_length=50)
    note: str | None = None


class AssetOut(ORMModel):
    id: str
    name: str
    category: AssetCategory
    ticker: str | None = None
    note: str | None = None
