from datetime import datetime

import pytest

from ebay_orders.classify.rules import classify_title
from ebay_orders.models import OrderRow
from ebay_orders.pricing.engine import PricingContext


def make_row(
    name="",
    sku="SKU-1",
    payout_cny=0.0,
    gmv_usd=0.0,
    paid_at=None,
    payout_at=None,
    payout_status="已回款",
    category="Pokemon",
    sold_qty=1,
):
    return OrderRow(
        sku=sku,
        name=name,
        category=category,
        payout_status=payout_status,
        sold_qty=sold_qty,
        gmv_usd=gmv_usd,
        payout_cny=payout_cny,
        paid_at=paid_at,
        payout_at=payout_at,
        title_group=classify_title(name),
    )


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def ctx():
    return PricingContext()


@pytest.fixture
def scenario_rows():
    """三条端到端样例订单：正常回款 / 未回款 / 无法分类。"""
    return [
        make_row(
            "100 Lot Master Ball Holo", sku="A1", payout_cny=500, gmv_usd=80,
            paid_at=datetime(2024, 5, 1, 9, 0), payout_at=datetime(2024, 5, 10, 12, 0),
        ),
        make_row(
            "RR Only pack", sku="B2", payout_cny=0, gmv_usd=20,
            paid_at=datetime(2024, 5, 2, 10, 0), payout_status="待回款",
        ),
        make_row(
            "mystery bundle", sku="C3", payout_cny=60, gmv_usd=12,
            paid_at=datetime(2024, 5, 3, 11, 0), payout_at=datetime(2024, 5, 12, 8, 0),
        ),
    ]
