from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from investtrack.models import Asset as AssetRow
from investtrack.models.enums import AssetCategory, FlowDirection, PolicyStatus
from investtrack.schemas.assets import AssetWriteRequest
from investtrack.schemas.policies import PolicyLayerInput, PolicyTargetInput, PolicyVersionWriteRequest
from investtrack.schemas.snapshots import HoldingFlowInput, SnapshotWriteRequest
from investtrack.services.repository import PortfolioRepository


logger = logging.getLogger(__name__)

DEMO_MONTHS = ("2024-01", "2024-02", "2024-03", "2024-04", "2024-05", "2024-06")

DEMO_ASSETS: tuple[tuple[str, AssetCategory, str | None, str], ...] = (
    ("CSI 300 ETF", AssetCategory.fund, "510300", "Core China equity"),
    ("Nasdaq 100 ETF", AssetCategory.fund, "513100", "US tech growth"),
    ("Tencent Holdings", AssetCategory.security, "00700.HK", "HK internet"),
    ("Bank wealth product", AssetCategory.wealth, None, "Low-risk wealth management"),
    ("Physical gold", AssetCategory.gold, None, "Hedge"),
    ("Bitcoin", AssetCategory.crypto, "BTC", "Asymmetric bet"),
    ("Money market reserve", AssetCategory.fixed, None, "Liquidity"),
)

# Opening price and quantity per asset, followed by month-on-month price moves in percent.
DEMO_OPENING: dict[str, tuple[Decimal, Decimal]] = {
    "CSI 300 ETF": (Decimal("3.5"), Decimal("10000")),
    "Nasdaq 100 ETF": (Decimal("1.2"), Decimal("20000")),
    "Tencent Holdings": (Decimal("280"), Decimal("200")),
    "Bank wealth product": (Decimal("1"), Decimal("50000")),
    "Physical gold": (Decimal("480"), Decimal("50")),
    "Bitcoin": (Decimal("450000"), Decimal("0.1")),
    "Money market reserve": (Decimal("1"), Decimal("20000")),
}

DEMO_PRICE_MOVES: dict[str, tuple[int, ...]] = {
    "CSI 300 ETF": (0, -3, 2, 5, -1, 4),
    "Nasdaq 100 ETF": (0, 6, 3, -2, 7, 5),
    "Tencent Holdings": (0, 4, -5, 8, 2, -1),
    "Physical gold": (0, 2, 6, 4, -2, 3),
    "Bitcoin": (0, 8, -5, 12, -4, 6),
}

DEMO_NOTES = (
    "Initial positions built.",
    "US equities at new highs; holding steady.",
    "Added to China equities on weakness.",
    "Gold rallied hard; trimmed a little.",
    "Bonus month: topped up the wealth product.",
    "Half-year review: ahead of inflation, staying the course.",
)


def _seed_assets(repo: PortfolioRepository) -> dict[str, str]:
    ids: dict[str, str] = {}
    for name, category, ticker, note in DEMO_ASSETS:
        asset = repo.save_asset(AssetWriteRequest(name=name, category=category, ticker=ticker, note=note))
        ids[name] = asset.id
    return ids


def _seed_policy(repo: PortfolioRepository, ids: dict[str, str]) -> None:
    repo.save_policy_version(
        PolicyVersionWriteRequest(
            name="2024 Global Allocation",
            start_date=date(2024, 1, 1),
            status=PolicyStatus.active,
            rationale="Core and satellite: a 40% defensive base and a 60% growth sleeve.",
            layers=[
                PolicyLayerInput(
                    name="Defensive base",
                    weight_pct=Decimal("40"),
                    description="Safety margin and liquidity",
                    targets=[
                        PolicyTargetInput(asset_id=ids["Bank wealth product"], intra_layer_weight_pct=Decimal("50"), color="#64748b"),
                        PolicyTargetInput(asset_id=ids["Money market reserve"], intra_layer_weight_pct=Decimal("25"), color="#94a3b8"),
                        PolicyTargetInput(asset_id=ids["Physical gold"], intra_layer_weight_pct=Decimal("-1"), color="#f59e0b"),
                    ],
                ),
                PolicyLayerInput(
                    name="Growth sleeve",
                    weight_pct=Decimal("60"),
                    description="Main source of returns",
                    targets=[
                        PolicyTargetInput(asset_id=ids["CSI 300 ETF"], intra_layer_weight_pct=Decimal("-1"), color="#ef4444"),
                        PolicyTargetInput(asset_id=ids["Nasdaq 100 ETF"], intra_layer_weight_pct=Decimal("-1"), color="#3b82f6"),
                        PolicyTargetInput(asset_id=ids["Tencent Holdings"], intra_layer_weight_pct=Decimal("-1"), color="#8b5cf6"),
                        PolicyTargetInput(asset_id=ids["Bitcoin"], intra_layer_weight_pct=Decimal("-1"), color="#f97316"),
                    ],
                ),
            ],
        )
    )


def _seed_snapshots(repo: PortfolioRepository, ids: dict[str, str]) -> None:
    prices = {name: opening[0] for name, opening in DEMO_OPENING.items()}
    for index, month in enumerate(DEMO_MONTHS):
        holdings: list[HoldingFlowInput] = []
        for name, asset_id in ids.items():
            move = DEMO_PRICE_MOVES.get(name)
            if move is not None:
                prices[name] = (prices[name] * (Decimal("100") + move[index]) / Decimal("100")).quantize(Decimal("0.0001"))
            price = prices[name]

            if index == 0:
                quantity = DEMO_OPENING[name][1]
                holdings.append(
                    HoldingFlowInput(
                        asset_id=asset_id,
                        unit_price=price,
                        quantity_change=quantity,
                        principal_change=quantity * price,
                    )
                )
            elif name == "Money market reserve":
                # Monthly interest accrues as quantity without new principal.
                holdings.append(
                    HoldingFlowInput(asset_id=asset_id, unit_price=price, quantity_change=Decimal("60"))
                )
            elif name == "Physical gold" and index == 3:
                holdings.append(
                    HoldingFlowInput(
                        asset_id=asset_id,
                        unit_price=price,
                        direction=FlowDirection.sell,
                        quantity_change=Decimal("5"),
                        principal_change=Decimal("5") * price,
                    )
                )
            elif name == "Bank wealth product" and index == 4:
                holdings.append(
                    HoldingFlowInput(
                        asset_id=asset_id,
                        unit_price=price,
                        quantity_change=Decimal("5000"),
                        principal_change=Decimal("5000"),
                    )
                )
            else:
                holdings.append(HoldingFlowInput(asset_id=asset_id, unit_price=price))

        repo.save_snapshot(SnapshotWriteRequest(month=month, note=DEMO_NOTES[index], holdings=holdings))


def seed_demo_data(db: Session, repo: PortfolioRepository | None = None) -> bool:
    """Load a demo portfolio into an empty database. Returns False when data already exists."""
    existing = db.scalar(select(func.count()).select_from(AssetRow))
    if existing:
        return False

    repo = repo or PortfolioRepository(db)
    ids = _seed_assets(repo)
    _seed_policy(repo, ids)
    _seed_snapshots(repo, ids)
    db.commit()
    logger.info("Seeded demo portfolio with %d assets and %d snapshots", len(ids), len(DEMO_MONTHS))
    return True
