from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from investtrack.models.enums import PolicyStatus
from investtrack.schemas.common import ORMModel
from investtrack.services.portfolio_types import AUTO_WEIGHT, DEFAULT_TARGET_COLOR


class PolicyTargetInput(BaseModel):
    id: str | None = None
    asset_id: str = Field(min_length=1, max_length=36)
    name: str | None = Field(default=None, max_length=255)
    # Percent of the layer; -1 shares the unclaimed remainder.
    intra_layer_weight_pct: Decimal = Field(default=AUTO_WEIGHT, le=100)
    color: str = Field(default=DEFAULT_TARGET_COLOR, max_length=20)
    note: str | None = None

    @field_validator("intra_layer_weight_pct")
    @classmethod
    def _weight_or_auto(cls, value: Decimal) -> Decimal:
        if value < 0 and value != AUTO_WEIGHT:
            raise ValueError("weight must be >= 0 or -1 for auto")
        return value


class PolicyLayerInput(BaseModel):
    id: str | None = None
    name: str = Field(min_length=1, max_length=255)
    weight_pct: Decimal = Field(ge=0, le=100)
    description: str | None = None
    targets: list[PolicyTargetInput] = Field(default_factory=list)


class PolicyVersionWriteRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    start_date: date
    status: PolicyStatus = PolicyStatus.active
    rationale: str = ""
    layers: list[PolicyLayerInput] = Field(default_factory=list)


class PolicyCloneRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    start_date: date | None = None


class PolicyTargetOut(ORMModel):
    id: str
    asset_id: str
    name: str
    intra_layer_weight_pct: Decimal
    color: str
    note: str | None = None


class PolicyLayerOut(ORMModel):
    id: str
    name: str
    weight_pct: Decimal
    description: str | None = None
    targets: list[PolicyTargetOut]


class PolicyVersionOut(ORMModel):
    id: str
    name: str
    start_date: date
    status: PolicyStatus
    rationale: str
    layers: list[PolicyLayerOut]
