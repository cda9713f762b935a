from decimal import Decimal

import pytest
from pydantic import ValidationError

from investtrack.schemas.policies import PolicyLayerInput, PolicyTargetInput
from investtrack.services.portfolio_types import AUTO_WEIGHT


def test_target_weight_accepts_auto_and_the_percent_range() -> None:
    assert PolicyTargetInput(asset_id="a").intra_layer_weight_pct == AUTO_WEIGHT
    assert PolicyTargetInput(asset_id="a", intra_layer_weight_pct="0").intra_layer_weight_pct == Decimal("0")
    assert PolicyTargetInput(asset_id="a", intra_layer_weight_pct="100").intra_layer_weight_pct == Decimal("100")


@pytest.mark.parametrize("weight", ["100.5", "-2", "-0.5"])
def test_target_weight_outside_the_percent_range_is_rejected(weight: str) -> None:
    with pytest.raises(ValidationError):
        PolicyTargetInput(asset_id="a", intra_layer_weight_pct=weight)


@pytest.mark.parametrize("weight", ["-1", "120"])
def test_layer_weight_must_be_a_percent(weight: str) -> None:
    with pytest.raises(ValidationError):
        PolicyLayerInput(name="Growth", weight_pct=weight)
    assert PolicyLayerInput(name="Growth", weight_pct="100").weight_pct == Decimal("100")
