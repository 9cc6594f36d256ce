"""Starter rule file and sample workbook generators."""

import logging
from pathlib import Path
from typing import Union

from datamorph.codecs import Sheet, Workbook, encode_workbook
from datamorph.errors import ConversionIOError
from datamorph.utils import write_bytes, write_text

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_RULES_FILE = "data-transform.yaml"
DEFAULT_SAMPLE_FILE = "sample-sales.xlsx"

RULES_TEMPLATE = """\
# DataMorph transformation rules
# Rules run in order; set enabled: false to skip one.

transformations:
  - name: "Filter Active Records"
    kind: filter
    enabled: true
    condition: "data.isActive === true"

  - name: "Rename Fields"
    kind: mapping
    enabled: true
    mapping:
      # Format: newFieldName: existingFieldName
      userName: "name"
      userEmail: "email"

  - name: "Add Calculated Field"
    kind: calculate
    enabled: true
    calculate:
      field: "displayName"
      expression: "data.firstName + ' ' + data.lastName"
"""

SAMPLE_SALES = [
    {"order_id": "ORD-001", "date": "2024-01-15", "customer_name": "John Smith",
     "product": "Laptop Pro", "quantity": 1, "unit_price": 1299.99, "total": 1299.99,
     "payment_method": "Credit Card", "status": "Delivered"},
    {"order_id": "ORD-002", "date": "2024-01-17", "customer_name": "Emily Johnson",
     "product": "Wireless Mouse", "quantity": 2, "unit_price": 24.95, "total": 49.9,
     "payment_method": "PayPal", "status": "Delivered"},
    {"order_id": "ORD-003", "date": "2024-01-20", "customer_name": "Michael Brown",
     "product": '27" Monitor', "quantity": 1, "unit_price": 349.5, "total": 349.5,
     "payment_method": "Credit Card", "status": "Shipped"},
    {"order_id": "ORD-004", "date": "2024-01-25", "customer_name": "Sarah Wilson",
     "product": "Ergonomic Keyboard", "quantity": 1, "unit_price": 89.99, "total": 89.99,
     "payment_method": "Credit Card", "status": "Processing"},
    {"order_id": "ORD-005", "date": "2024-01-30", "customer_name": "David Lee",
     "product": "Laptop Pro", "quantity": 1, "unit_price": 1299.99, "total": 1299.99,
     "payment_method": "Bank Transfer", "status": "Delivered"},
]

SAMPLE_INVENTORY = [
    {"product_id": "PROD-001", "product_name": "Laptop Pro", "category": "Computers",
     "in_stock": 15, "price": 1299.99, "last_restock": "2024-01-10"},
    {"product_id": "PROD-002", "product_name": "Wireless Mouse", "category": "Accessories",
     "in_stock": 42, "price": 24.95, "last_restock": "2024-01-05"},
    {"product_id": "PROD-003", "product_name": '27" Monitor', "category": "Displays",
     "in_stock": 8, "price": 349.5, "last_restock": "2023-12-20"},
    {"product_id": "PROD-004", "product_name": "Ergonomic Keyboard", "category": "Accessories",
     "in_stock": 22, "price": 89.99, "last_restock": "2024-01-15"},
    {"product_id": "PROD-005", "product_name": "External SSD 1TB", "category": "Storage",
     "in_stock": 30, "price": 149.99, "last_restock": "2024-01-12"},
]


def _check_target(path: Path, overwrite: bool) -> None:
    if path.exists() and not overwrite:
        raise ConversionIOError(f"File {path.name} already exists", file_path=str(path))


def write_rules_template(path: PathLike, overwrite: bool = False) -> Path:
    """Write a starter rule file.

    Args:
        path: Destination file, or a folder to place ``data-transform.yaml`` in
        overwrite: Replace an existing file

    Raises:
        ConversionIOError: If the file exists and ``overwrite`` is False
    """
    path = Path(path)
    if path.is_dir():
        path = path / DEFAULT_RULES_FILE
    _check_target(path, overwrite)
    write_text(path, RULES_TEMPLATE)
    logger.info(f"Created rules template at {path}", extra={"output_path": str(path)})
    return path


def create_sample_workbook(path: PathLike, overwrite: bool = False) -> Path:
    """Write a two-sheet (Sales, Inventory) sample workbook."""
    path = Path(path)
    if path.is_dir():
        path = path / DEFAULT_SAMPLE_FILE
    _check_target(path, overwrite)
    workbook = Workbook(sheets=[
        Sheet(name="Sales", records=[dict(r) for r in SAMPLE_SALES]),
        Sheet(name="Inventory", records=[dict(r) for r in SAMPLE_INVENTORY]),
    ])
    write_bytes(path, encode_workbook(workbook))
    logger.info(f"Created sample workbook at {path}", extra={"output_path": str(path)})
    return path
