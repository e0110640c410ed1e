from .affected import find_affected_packages, find_affected_packages_with_reasoning
from .batching import plan_features, rechunk_jobs
from .errors import (
    CIMatrixError,
    InvalidPatternError,
    ManifestNotFound,
    ManifestParseError,
    PackageNotFound,
    WorkspaceRootNotFound,
)
from .jobs import JobOptions, generate_package_jobs, generate_workspace_jobs
from .model import AffectedPackage, FeaturePlan, JobDescriptor, PropagatedConfig, Step
from .propagate import collect_propagated
from .resolver import find_workspace_dependencies
from .toolchains import collect_workspace_toolchains
from .workspace import WorkspaceContext, find_workspace_root

__all__ = [
    "find_affected_packages",
    "find_affected_packages_with_reasoning",
    "plan_features",
    "rechunk_jobs",
    "CIMatrixError",
    "InvalidPatternError",
    "ManifestNotFound",
    "ManifestParseError",
    "PackageNotFound",
    "WorkspaceRootNotFound",
    "JobOptions",
    "generate_package_jobs",
    "generate_workspace_jobs",
    "AffectedPackage",
    "FeaturePlan",
    "JobDescriptor",
    "PropagatedConfig",
    "Step",
    "collect_propagated",
    "find_workspace_dependencies",
    "collect_workspace_toolchains",
    "WorkspaceContext",
    "find_workspace_root",
]
