from __future__ import annotations
import os

MANIFEST_FILENAME = "Cargo.toml"
CONFIG_FILENAME = os.environ.get("CIMATRIX_CONFIG_FILE", "cimatrix.toml")
DEFAULT_OS = os.environ.get("CIMATRIX_DEFAULT_OS", "ubuntu")
LOG_LEVEL = os.environ.get("CIMATRIX_LOG_LEVEL", "WARNING").upper()

DEPENDENCY_SECTIONS = ("dependencies", "dev-dependencies", "build-dependencies")
