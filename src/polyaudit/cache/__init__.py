# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Caching helpers for adapter availability."""

from __future__ import annotations

from .availability import AvailabilityCache, AvailabilityEntry

__all__ = ["AvailabilityCache", "AvailabilityEntry"]
