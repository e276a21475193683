"""
Layout Package

Block -> column -> page pagination.

Public API:
    paginate(blocks, measurer, config, settings) -> PageLayout
    flow(...) / rebalance(...) for the two passes separately
"""

from .config import LayoutConfig
from .measure import BlockMeasurer, FixedHeightMeasurer, TextHeightEstimator
from .models import ColumnPlan, ColumnSlot, PageLayout, PagePlan
from .paginator import HeightProbe, OverflowProbe, flow, paginate, rebalance

__all__ = [
    "LayoutConfig",
    "BlockMeasurer",
    "FixedHeightMeasurer",
    "TextHeightEstimator",
    "ColumnPlan",
    "ColumnSlot",
    "PageLayout",
    "PagePlan",
    "HeightProbe",
    "OverflowProbe",
    "flow",
    "paginate",
    "rebalance",
]
