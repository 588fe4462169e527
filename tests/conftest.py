from __future__ import annotations

from pathlib import Path

import pytest

from insightcanvas.config import Settings


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        anthropic_api_key="test-key",
        data_dir=str(tmp_path / "data"),
        retry_backoff=0.0,
        observability_metrics_enabled=False,
    )
