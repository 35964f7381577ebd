"""
Pytest configuration and shared fixtures for the receiving test suite.
"""
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

# Fixed "now" for validator date checks
FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="receiving_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    config = Config()
    # Override paths to use temp directory
    config.output_dir = temp_dir / "output"
    config.export_dir = temp_dir / "output" / "export"
    config.db_path = temp_dir / "output" / "receiving.db"
    config.config_dir = temp_dir / "config"
    config.config_dir.mkdir(parents=True, exist_ok=True)
    config.summary_approved_only = True
    config.over_delivery_warning = True
    config.ensure_output_dir()
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from receiving.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def admin():
    from models.request import Actor
    return Actor(id="admin-1", role="admin")


@pytest.fixture
def requester():
    from models.request import Actor
    return Actor(id="user-7", role="requester")


@pytest.fixture
def lifecycle(test_db):
    from receiving.lifecycle import RequestLifecycle
    return RequestLifecycle(test_db)


@pytest.fixture
def ledger(test_db, lifecycle):
    """Receipt ledger whose validator sees a fixed clock (2024-06-15 12:00 UTC)."""
    from receiving.ledger import ReceiptLedger
    from receiving.validator import ReceiptValidator

    return ReceiptLedger(
        test_db,
        lifecycle=lifecycle,
        validator=ReceiptValidator(clock=lambda: FIXED_NOW),
    )


@pytest.fixture
def make_request(lifecycle, admin, requester) -> Callable:
    """
    Factory: create a request owned by `requester`, approve the given items
    and move the request to `status`.

    Returns (request_id, [item_id, ...]).
    """
    def _make(quantities=(10,), status="approved", item_status="approved"):
        request = lifecycle.create_request(
            requester,
            [{"product_name": f"Product {i + 1}", "quantity": q} for i, q in enumerate(quantities)],
        )
        item_ids = [item.id for item in request.items]
        for item_id in item_ids:
            if item_status != "pending":
                lifecycle.review_item(item_id, item_status, admin)
        if status != "pending":
            lifecycle.transition(request.id, status, admin)
        return request.id, item_ids

    return _make


@pytest.fixture
def approved_item(make_request):
    """A single approved item (ordered quantity 10) on an approved request."""
    request_id, item_ids = make_request((10,))
    return request_id, item_ids[0]


@pytest.fixture
def valid_payload() -> dict:
    """A receipt payload that passes validation against FIXED_NOW."""
    return {
        "quantityReceived": 4,
        "invoiceNumber": "NF-1001",
        "invoiceDate": "2024-06-10",
        "lotNumber": "L-42",
        "expirationDate": "2025-06-10",
        "supplierId": 3,
        "receiptCondition": "good",
        "qualityChecked": True,
    }


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
