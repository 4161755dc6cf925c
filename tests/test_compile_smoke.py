from __future__ import annotations

import compileall
from pathlib import Path


def test_freight_engine_compile_smoke() -> None:
    package_dir = Path(__file__).resolve().parents[1] / "freight_engine"
    assert compileall.compile_dir(str(package_dir), quiet=1)
