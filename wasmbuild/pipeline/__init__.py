"""
Build Pipeline Module

Provides ordered, fail-fast contract builds:
- Declared-order execution
- Blocking toolchain invocation per package
- Artifact collection into a shared output directory
"""

from wasmbuild.pipeline.orchestrator import (
    BuildOrchestrator,
    BuildResult,
    PackageBuild,
    PackageStatus,
    run_pipeline,
)

__all__ = [
    "BuildOrchestrator",
    "BuildResult",
    "PackageBuild",
    "PackageStatus",
    "run_pipeline",
]
