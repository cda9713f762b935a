from decimal import Decimal

from pydantic import BaseModel, Field

from investtrack.models.enums import AssetCategory, FlowDirection
from investtrack.schemas.common import MONTH_REGEX, ORMModel
from investtrack.services.ledger_replay import signed_flow


class HoldingFlowInput(BaseModel):
    asset_id: str = Field(min_length=1, max_length=36)
    # Fallbacks for assets that are no longer in the catalogue.
    name: str | None = Field(default=None, max_length=255)
    category: AssetCategory | None = None
    unit_price: Decimal | None = Field(default=None, ge=0)
    direction: FlowDirection = FlowDirection.buy
    quantity_change: Decimal = Field(default=Decimal("0"), ge=0)
    principal_change: Decimal = Field(default=Decimal("0"), ge=0)

    def signed_deltas(self) -> tuple[Decimal, Decimal]:
        return signed_flow(self.direction, self.quantity_change, self.principal_change)


class SnapshotWriteRequest(BaseModel):
    month: str = Field(pattern=MONTH_REGEX)
    note: str = ""
    holdings: list[HoldingFlowInput] = Field(default_factory=list)


class HoldingRecordOut(ORMModel):
    id: str | None = None
    asset_id: str
    name: str
    category: AssetCategory
    unit_price: Decimal
    quantity: Decimal
    market_value: Decimal
    total_cost: Decimal
    added_quantity: Decimal
    added_principal: Decimal


class SnapshotSummaryOut(ORMModel):
    id: str
    month: str
    total_value: Decimal
    total_invested: Decimal
    note: str


class SnapshotDetailOut(SnapshotSummaryOut):
    records: list[HoldingRecordOut]


class RecalculateResponse(BaseModel):
    snapshots: int
