from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from wasmbuild.config import PackageSpec
from wasmbuild.pipeline import BuildOrchestrator, PackageStatus, run_pipeline


def test_builds_every_package_in_order(contracts, build_cmd, invocations):
    root = contracts("auction_house", "escrow", "account_manager")
    names = ["auction_house", "escrow", "account_manager"]

    result = run_pipeline(names, build_cmd, root / "dist", source_root=root)

    assert result.status == "success"
    assert invocations() == names
    assert result.packages_succeeded == 3
    assert sorted(p.name for p in (root / "dist").iterdir()) == sorted(
        f"{n}.wasm" for n in names
    )
    assert [r["status"] for r in result.package_results] == ["success"] * 3


def test_each_package_builds_in_its_own_directory(contracts, build_cmd, invocations):
    root = contracts("a", "b", "c")

    run_pipeline(["a", "b", "c"], build_cmd, root / "dist", source_root=root)

    for name in ("a", "b", "c"):
        artifact = root / "dist" / f"{name}.wasm"
        assert artifact.read_bytes().endswith(name.encode())
        assert (root / name / "target" / "wasm32-unknown-unknown" / "release" / f"{name}.wasm").exists()


@pytest.mark.parametrize(
    "order",
    [["a", "b", "c"], ["c", "a", "b"], ["b", "c", "a"]],
)
def test_permuted_order_yields_same_artifacts(contracts, build_cmd, invocations, order):
    root = contracts("a", "b", "c")

    run_pipeline(order, build_cmd, root / "dist", source_root=root)

    assert invocations() == order
    assert sorted(p.name for p in (root / "dist").iterdir()) == ["a.wasm", "b.wasm", "c.wasm"]
    for name in order:
        assert (root / "dist" / f"{name}.wasm").read_bytes().endswith(name.encode())


def test_rebuild_is_byte_identical(contracts, build_cmd, invocations):
    root = contracts("escrow")

    run_pipeline(["escrow"], build_cmd, root / "dist", source_root=root)
    first = (root / "dist" / "escrow.wasm").read_bytes()
    run_pipeline(["escrow"], build_cmd, root / "dist", source_root=root)

    assert (root / "dist" / "escrow.wasm").read_bytes() == first
    assert invocations() == ["escrow", "escrow"]


def test_duplicate_package_is_rebuilt(contracts, build_cmd, invocations):
    root = contracts("escrow")

    result = run_pipeline(["escrow", "escrow"], build_cmd, root / "dist", source_root=root)

    assert result.status == "success"
    assert invocations() == ["escrow", "escrow"]
    assert [p.name for p in (root / "dist").iterdir()] == ["escrow.wasm"]


def test_explicit_package_path(tmp_path, contracts, build_cmd, invocations):
    root = contracts("escrow")
    elsewhere = tmp_path / "vendor" / "deed"
    elsewhere.mkdir(parents=True)

    result = run_pipeline(
        ["escrow", PackageSpec(name="deed", path=elsewhere)],
        build_cmd,
        root / "dist",
        source_root=root,
    )

    assert result.status == "success"
    assert invocations() == ["escrow", "deed"]
    assert (root / "dist" / "deed.wasm").exists()


def test_process_cwd_is_untouched(contracts, build_cmd, invocations):
    root = contracts("a", "b")
    before = os.getcwd()

    run_pipeline(["a", "b"], build_cmd, root / "dist", source_root=root)

    assert os.getcwd() == before


def test_dry_run_invokes_nothing(contracts, build_cmd, invocations):
    root = contracts("a", "b")
    orchestrator = BuildOrchestrator(["a", "b"], build_cmd, root / "dist", source_root=root, dry_run=True)

    result = orchestrator.run()

    assert result.status == "success"
    assert invocations() == []
    assert list((root / "dist").iterdir()) == []
    assert result.artifacts == []


def test_plan_maps_names_to_absolute_dirs(tmp_path, build_cmd):
    orchestrator = BuildOrchestrator(["a", "b"], build_cmd, tmp_path / "dist", source_root=tmp_path)

    plan = orchestrator.plan()

    assert [b.source_dir for b in plan] == [tmp_path.resolve() / "a", tmp_path.resolve() / "b"]
    assert all(b.status is PackageStatus.PENDING for b in plan)


def test_empty_package_list_succeeds(tmp_path, build_cmd, invocations):
    result = run_pipeline([], build_cmd, tmp_path, source_root=tmp_path)

    assert result.status == "success"
    assert result.total_packages == 0
    assert invocations() == []


def test_successful_build_keeps_toolchain_warnings(contracts, build_cmd, invocations, caplog):
    root = contracts("escrow")
    caplog.set_level(logging.DEBUG, logger="wasmbuild.pipeline.orchestrator")

    run_pipeline(["escrow"], build_cmd, root / "dist", source_root=root)

    assert "warning: unused variable `fee` in crate `escrow`" in caplog.text
