"""Top-level test configuration for calendar_lite."""

from typing import Any


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line(
        "markers", "integration: Tests spanning scheduler, store and dispatcher"
    )
