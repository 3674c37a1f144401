# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Scheduling of adapters across detected languages."""

from __future__ import annotations

from .orchestrator import NO_LANGUAGES_NOTE, Orchestrator, ScheduledAdapter, run_analysis

__all__ = ["NO_LANGUAGES_NOTE", "Orchestrator", "ScheduledAdapter", "run_analysis"]
