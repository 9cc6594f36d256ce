"""Pytest configuration and fixtures."""

import json

import pytest

from datamorph.codecs import Sheet, Workbook, encode_workbook
from datamorph.config import ConversionOptions


@pytest.fixture
def sample_record():
    """Single user record."""
    return {
        "id": 1,
        "name": "Alice",
        "email": "alice@example.com",
        "active": True,
    }


@pytest.fixture
def sample_records():
    """List of flat user records."""
    return [
        {"id": 1, "name": "Alice", "score": 9.5, "active": True},
        {"id": 2, "name": "Bob", "score": 7, "active": False},
        {"id": 3, "name": "Carol", "score": 8.25, "active": True},
    ]


@pytest.fixture
def nested_record():
    """Deeply nested record for testing flattening."""
    return {
        "id": "nested-1",
        "user": {
            "name": "John Doe",
            "email": "john@example.com",
            "profile": {
                "age": 30,
                "location": {
                    "city": "New York",
                    "country": "USA",
                },
            },
        },
        "items": [
            {"sku": "A1", "qty": 2},
            {"sku": "B2", "qty": 1},
        ],
    }


@pytest.fixture
def options():
    """Default conversion options targeting JSON."""
    return ConversionOptions(target_format="json")


@pytest.fixture
def csv_file(tmp_path):
    """CSV source file with typed columns."""
    path = tmp_path / "users.csv"
    path.write_text(
        "id,name,score,active\n"
        "1,Alice,9.5,true\n"
        "2,Bob,7,false\n"
        "3,Carol,8.25,true\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def json_file(tmp_path):
    """JSON source file holding an array of objects."""
    path = tmp_path / "people.json"
    path.write_text(
        json.dumps([
            {"name": "Alice", "isActive": True, "address": {"city": "Oslo"}},
            {"name": "Bob", "isActive": False},
        ]),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def workbook_file(tmp_path):
    """Two-sheet .xlsx source file."""
    path = tmp_path / "report.xlsx"
    workbook = Workbook(sheets=[
        Sheet(name="Users", records=[
            {"id": 1, "name": "Alice"},
            {"id": 2, "name": "Bob"},
        ]),
        Sheet(name="Orders", records=[
            {"order": "A-1", "total": 12.5},
        ]),
    ])
    path.write_bytes(encode_workbook(workbook))
    return path


@pytest.fixture
def rules_file(tmp_path):
    """Rule file using legacy (kind-less) rule objects."""
    path = tmp_path / "rules.yaml"
    path.write_text(
        "transformations:\n"
        "  - name: Active only\n"
        "    condition: data.isActive === true\n"
        "  - name: Rename\n"
        "    mapping:\n"
        "      fullName: name\n"
        "  - name: Greeting\n"
        "    calculate:\n"
        "      field: greeting\n"
        "      expression: \"'Hi ' + data.fullName\"\n",
        encoding="utf-8",
    )
    return path
