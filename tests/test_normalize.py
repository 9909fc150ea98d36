import json
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from ro_analytics.rag.normalize import MAX_ROWS, normalize_row, normalize_rows, normalize_value


def test_caps_at_200_rows():
    rows = ({"id": i} for i in range(10_000))
    out = normalize_rows(rows)
    assert len(out) == MAX_ROWS == 200
    assert out[-1] == {"id": 199}


def test_driver_values_become_json_safe():
    row = {
        "total": Decimal("1234.50"),
        "count": Decimal("7"),
        "when": datetime(2024, 3, 1, 12, 30),
        "day": date(2024, 3, 1),
        "at": time(8, 15),
        "took": timedelta(minutes=2),
        "uid": UUID("12345678-1234-5678-1234-567812345678"),
        "raw": b"\x01\xff",
        "huge": 2**60,
        "nan": float("nan"),
        "tags": ("a", Decimal("2")),
    }
    out = normalize_row(row)
    assert out == {
        "total": 1234.5,
        "count": 7,
        "when": "2024-03-01T12:30:00",
        "day": "2024-03-01",
        "at": "08:15:00",
        "took": 120.0,
        "uid": "12345678-1234-5678-1234-567812345678",
        "raw": "01ff",
        "huge": str(2**60),
        "nan": None,
        "tags": ["a", 2],
    }
    json.dumps(out)


def test_non_mapping_rows_are_wrapped():
    assert normalize_row(5) == {"valor": 5}
    assert normalize_row(("a", 1)) == {"valor": ["a", 1]}


def test_row_like_objects_use_their_mapping():
    class FakeRow:
        _mapping = {"name": "Ana", "totalCents": Decimal("1500")}

    assert normalize_value(FakeRow()) == {"name": "Ana", "totalCents": 1500}
