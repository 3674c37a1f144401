# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Multi-language static-analysis orchestration with a unified issue model."""

from __future__ import annotations

from importlib import metadata as importlib_metadata

try:
    __version__ = importlib_metadata.version("polyaudit")
except importlib_metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
