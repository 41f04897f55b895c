"""
Pytest configuration and fixtures for codemode tests.
"""

import os

import pytest
from hypothesis import Verbosity, settings

from codemode.core.config import ProjectConfig

# Configure hypothesis settings for property-based testing
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for slow operations
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

# Load profile from environment or use default
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


@pytest.fixture(autouse=True)
def clean_codemode_env(monkeypatch):
    """Keep environment overrides from leaking into configuration under test."""
    for name in (
        "PROJECTS_PATH",
        "HOST_PROJECTS_PATH",
        "CODEMODE_NODE",
        "MASK_SENSITIVE_LOGS",
        "MAX_LOG_PREVIEW_LENGTH",
        "NODE_ENV",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project_config(tmp_path):
    """Configuration rooted in a temporary directory."""
    config = ProjectConfig.from_dict(
        {
            "sandbox": {"projects_root": str(tmp_path / "projects")},
            "capabilities": {
                "bestcase_dir": str(tmp_path / "bestcases"),
                "guides_dir": str(tmp_path / "guides"),
            },
        }
    )
    (tmp_path / "projects").mkdir()
    return config
