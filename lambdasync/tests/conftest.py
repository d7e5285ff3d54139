from __future__ import annotations

from pathlib import Path

import pytest

from lambdasync.tests.fakes import FakeLambda, FakeRunner


@pytest.fixture
def fake_lambda() -> FakeLambda:
    return FakeLambda()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "service"
    root.mkdir()
    (root / "handler.js").write_text("exports.handler = async () => 'ok';\n", encoding="utf-8")
    return root
