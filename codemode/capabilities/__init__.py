"""
Default capability façades injected into guest code.
"""

from ..core.config import ProjectConfig
from .bestcase import BestCaseStore
from .filesystem import FilesystemCapability
from .guides import Guide, GuideStore
from .metadata import HeuristicMetadataAnalyzer


def build_default_facades(config: ProjectConfig) -> list:
    """Façades for every capability name, configured from *config*."""
    return [
        FilesystemCapability(
            projects_root=config.sandbox.projects_root,
            host_projects_path=config.capabilities.host_projects_path,
        ),
        BestCaseStore(config.capabilities.bestcase_dir),
        GuideStore(config.capabilities.guides_dir),
        HeuristicMetadataAnalyzer(),
    ]


__all__ = [
    "BestCaseStore",
    "FilesystemCapability",
    "Guide",
    "GuideStore",
    "HeuristicMetadataAnalyzer",
    "build_default_facades",
]
