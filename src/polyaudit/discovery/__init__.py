# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Discovery helpers for the polyaudit package."""

from __future__ import annotations

from .filesystem import DiscoveryOptions, DiscoveryResult, FilesystemDiscovery, discover, is_test_path

__all__ = ["DiscoveryOptions", "DiscoveryResult", "FilesystemDiscovery", "discover", "is_test_path"]
