import enum


class AssetCategory(str, enum.Enum):
    security = "security"
    fund = "fund"
    wealth = "wealth"
    gold = "gold"
    fixed = "fixed"
    crypto = "crypto"
    other = "other"


class PolicyStatus(str, enum.Enum):
    active = "active"
    archived = "archived"


class ViewScope(str, enum.Enum):
    total = "total"
    policy = "policy"


class CategoryBucket(str, enum.Enum):
    equity = "equity"
    cash_fixed_income = "cash_fixed_income"
    alternative = "alternative"
    other = "other"


class TimeRange(str, enum.Enum):
    all = "all"
    ytd = "ytd"
    one_year = "1y"


class FlowDirection(str, enum.Enum):
    buy = "buy"
    sell = "sell"
