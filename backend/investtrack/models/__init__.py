from investtrack.models.asset import Asset
from investtrack.models.enums import (
    AssetCategory,
    CategoryBucket,
    FlowDirection,
    PolicyStatus,
    TimeRange,
    ViewScope,
)
from investtrack.models.policy import PolicyLayer, PolicyTarget, PolicyVersion
from investtrack.models.snapshot import HoldingRecord, Snapshot

__all__ = [
    "Asset",
    "AssetCategory",
    "CategoryBucket",
    "FlowDirection",
    "PolicyStatus",
    "TimeRange",
    "ViewScope",
    "PolicyVersion",
    "PolicyLayer",
    "PolicyTarget",
    "Snapshot",
    "HoldingRecord",
]
