import time
from datetime import date, datetime
from io import BytesIO

import pandas as pd
import pytest

from ebay_orders.importer import (
    IngestionError,
    build_column_map,
    map_raw_rows,
    norm_header,
    parse_excel_to_rows,
    to_datetime,
    to_number,
)
from ebay_orders.pricing.identity import hash_str, row_id

CN_HEADERS = [
    "库存SKU", "商品名称", "卡片类目", "回款状态", "售出数量",
    "成交金额($)", "回款金额(¥)", "eBay用户付款时间", "回款时间",
]


class TestHeaders:

    def test_norm_header(self):
        assert norm_header("成交金额 ($)") == "成交金额usd"
        assert norm_header("回款金额（￥）") == "回款金额cny"
        assert norm_header(" Custom label (SKU) ") == "customlabelsku"
        assert norm_header(None) == ""

    def test_chinese_export_headers(self):
        col_map = build_column_map(CN_HEADERS)
        assert col_map == {
            "sku": "库存SKU",
            "name": "商品名称",
            "category": "卡片类目",
            "payout_status": "回款状态",
            "sold_qty": "售出数量",
            "gmv_usd": "成交金额($)",
            "payout_cny": "回款金额(¥)",
            "paid_at": "eBay用户付款时间",
            "payout_at": "回款时间",
        }

    def test_english_headers(self):
        col_map = build_column_map(
            ["Custom label (SKU)", "Item title", "Sold for", "Payout amount", "Paid on date", "Payout date"]
        )
        assert col_map["sku"] == "Custom label (SKU)"
        assert col_map["name"] == "Item title"
        assert col_map["gmv_usd"] == "Sold for"
        assert col_map["payout_cny"] == "Payout amount"
        assert col_map["paid_at"] == "Paid on date"
        assert col_map["payout_at"] == "Payout date"
        assert "payout_status" not in col_map

    def test_substring_fallback(self):
        col_map = build_column_map(["订单SKU编号", "商品名称（英文）"])
        assert col_map["sku"] == "订单SKU编号"
        assert col_map["name"] == "商品名称（英文）"

    def test_exact_match_beats_substring(self):
        col_map = build_column_map(["回款金额说明", "回款金额"])
        assert col_map["payout_cny"] == "回款金额"

    def test_substring_skips_columns_taken_by_exact_match(self):
        col_map = build_column_map(["Title", "Payout status", "Payout date", "Net payout CNY"])
        assert col_map == {
            "name": "Title",
            "payout_status": "Payout status",
            "payout_cny": "Net payout CNY",
            "payout_at": "Payout date",
        }

    def test_each_column_used_once(self):
        col_map = build_column_map(["SKU", "Title", "Payout status", "Payout date"])
        assert len(set(col_map.values())) == len(col_map)
        assert "payout_cny" not in col_map


class TestCellParsing:

    @pytest.mark.parametrize("value, expected", [
        ("1,234.50", 1234.5),
        ("$12.00", 12.0),
        ("¥ 3,000", 3000.0),
        ("12 USD", 12.0),
        (5, 5.0),
        (2.5, 2.5),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        (float("nan"), 0.0),
        (True, 0.0),
    ])
    def test_to_number(self, value, expected):
        assert to_number(value) == expected

    def test_to_datetime_passthrough(self):
        dt = datetime(2024, 5, 1, 9, 30)
        assert to_datetime(dt) == dt
        assert to_datetime(pd.Timestamp(dt)) == dt
        assert to_datetime(date(2024, 5, 1)) == datetime(2024, 5, 1)

    def test_to_datetime_excel_serial(self):
        assert to_datetime(45000) == datetime(2023, 3, 15)
        assert to_datetime(45000.5) == datetime(2023, 3, 15, 12)
        assert to_datetime(0) is None
        assert to_datetime(float("nan")) is None

    def test_to_datetime_text(self):
        assert to_datetime("2024-05-01 10:00:00") == datetime(2024, 5, 1, 10)
        assert to_datetime("not a date") is None
        assert to_datetime("  ") is None
        assert to_datetime(None) is None
        assert to_datetime(pd.NaT) is None

    def test_aware_text_is_converted_to_utc(self):
        assert to_datetime("2024-05-01T10:00:00+08:00") == datetime(2024, 5, 1, 2, 0)
        assert to_datetime(pd.Timestamp("2024-05-01 10:00", tz="America/New_York")) == datetime(2024, 5, 1, 14, 0)


class TestMapRawRows:

    def test_maps_and_classifies(self):
        raw = [
            {
                "库存SKU": 1234.0, "商品名称": "  100 Lot  Master Ball Holo ", "卡片类目": "Pokemon",
                "回款状态": "", "售出数量": "1", "成交金额($)": "$80.00", "回款金额(¥)": "500",
                "eBay用户付款时间": "2024-05-01 09:30:00", "回款时间": "",
            },
        ]
        [row] = map_raw_rows(raw)
        assert row.sku == "1234"
        assert row.name == "100 Lot  Master Ball Holo"
        assert row.payout_status == "未知"
        assert row.gmv_usd == 80.0
        assert row.payout_cny == 500.0
        assert row.paid_at == datetime(2024, 5, 1, 9, 30)
        assert row.payout_at is None
        assert row.title_group == "Master Ball"

    def test_missing_columns_use_defaults(self):
        [row] = map_raw_rows([{"Title": "Mix 10 Lot"}])
        assert row.sku == ""
        assert row.payout_cny == 0.0
        assert row.title_group == "Mix"

    def test_empty(self):
        assert map_raw_rows([]) == []

    @pytest.mark.skipif(not hasattr(time, "tzset"), reason="需要 time.tzset")
    def test_row_id_does_not_depend_on_host_timezone(self, monkeypatch):
        raw = [{"SKU": "A1", "Title": "100 Lot Master Ball", "Paid date": "2024-05-01T10:00:00+08:00"}]
        ids = set()
        try:
            for tz in ["UTC", "Asia/Shanghai", "America/New_York"]:
                monkeypatch.setenv("TZ", tz)
                time.tzset()
                [row] = map_raw_rows(raw)
                assert row.paid_at == datetime(2024, 5, 1, 2, 0)
                ids.add(row_id(row))
        finally:
            monkeypatch.undo()
            time.tzset()
        assert ids == {hash_str("A1|100 Lot Master Ball|2024-05-01T02:00:00.000Z|")}


class TestParseFile:

    def test_csv_with_title_row_above_header(self):
        content = (
            "eBay 订单导出,,\n"
            "库存SKU,商品名称,回款金额(¥)\n"
            "A1,100 Lot Master Ball Holo,500\n"
            ",,\n"
        ).encode("utf-8")
        rows = parse_excel_to_rows(content, "orders.csv")
        assert len(rows) == 1
        assert rows[0].sku == "A1"
        assert rows[0].payout_cny == 500.0
        assert rows[0].payout_status == "未知"
        assert rows[0].title_group == "Master Ball"

    def test_csv_title_line_narrower_than_header(self):
        content = (
            "eBay 订单导出\n"
            "库存SKU,商品名称,回款金额(¥),回款时间\n"
            "A1,100 Lot Master Ball Holo,500,2024-05-10 12:00:00\n"
        ).encode("utf-8-sig")
        rows = parse_excel_to_rows(content, "orders.csv")
        assert [(r.sku, r.payout_cny, r.payout_at) for r in rows] == [
            ("A1", 500.0, datetime(2024, 5, 10, 12)),
        ]

    def test_empty_csv(self):
        assert parse_excel_to_rows(b"", "orders.csv") == []

    def test_xlsx_round_trip_keeps_row_ids_stable(self):
        df = pd.DataFrame(
            [
                ["A1", "100 Lot Master Ball Holo", "Pokemon", "已回款", 1, 80.0, 500.0,
                 datetime(2024, 5, 1, 9, 30), datetime(2024, 5, 10, 12)],
                ["B2", "RR Only pack", "Pokemon", "待回款", 1, 20.0, 0.0,
                 datetime(2024, 5, 2, 10), None],
            ],
            columns=CN_HEADERS,
        )
        buf = BytesIO()
        df.to_excel(buf, index=False)
        content = buf.getvalue()

        first = parse_excel_to_rows(content, "orders.xlsx")
        second = parse_excel_to_rows(content, "orders.xlsx")
        assert [r.sku for r in first] == ["A1", "B2"]
        assert first[0].paid_at == datetime(2024, 5, 1, 9, 30)
        assert first[1].payout_at is None
        assert [row_id(r) for r in first] == [row_id(r) for r in second]
        assert row_id(first[0]) == hash_str(
            "A1|100 Lot Master Ball Holo|2024-05-01T09:30:00.000Z|2024-05-10T12:00:00.000Z"
        )

    def test_unreadable_file(self):
        with pytest.raises(IngestionError):
            parse_excel_to_rows(b"definitely not a workbook", "orders.xlsx")
