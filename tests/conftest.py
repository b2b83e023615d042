from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List

import pytest

from wasmbuild.config import BuildCommand

FAKE_TOOLCHAIN = Path(__file__).parent / "fixtures" / "fake_toolchain.py"


@pytest.fixture
def build_cmd() -> BuildCommand:
    """Runs the fake toolchain with cargo-style flags."""
    return BuildCommand(program=sys.executable, subcommand=str(FAKE_TOOLCHAIN))


@pytest.fixture
def contracts(tmp_path: Path) -> Callable[..., Path]:
    """Create contracts/<name>/ for each name plus an empty contracts/dist/."""
    root = tmp_path / "contracts"

    def make(*names: str) -> Path:
        for name in names:
            (root / name).mkdir(parents=True, exist_ok=True)
            (root / name / "Cargo.toml").write_text(f'[package]\nname = "{name}"\n')
        (root / "dist").mkdir(parents=True, exist_ok=True)
        return root

    return make


@pytest.fixture
def invocations(tmp_path: Path, monkeypatch) -> Callable[[], List[str]]:
    """Record every fake toolchain run; call the fixture to read them back."""
    log = tmp_path / "toolchain.log"
    monkeypatch.setenv("FAKE_TOOLCHAIN_LOG", str(log))
    monkeypatch.delenv("FAKE_TOOLCHAIN_FAIL", raising=False)
    monkeypatch.delenv("FAKE_TOOLCHAIN_NO_ARTIFACT", raising=False)

    def read() -> List[str]:
        if not log.exists():
            return []
        return log.read_text().splitlines()

    return read
