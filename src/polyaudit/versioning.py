# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Helpers for extracting and comparing tool versions."""

from __future__ import annotations

import re

from packaging.version import InvalidVersion, Version


class VersionResolver:
    """Extract and compare tool versions using PEP 440 ordering."""

    VERSION_PATTERN = re.compile(r"(\d+(?:\.\d+)+)")

    def extract(self, output: str) -> str | None:
        """Return the first parseable version found in ``output``.

        Tools print versions in different shapes (``gosec`` prefixes
        ``Version:``, ``staticcheck`` appends a module version), so every line
        is scanned in order until one yields a valid version.

        Args:
            output: Combined stdout or stderr text from a version command.

        Returns:
            str | None: Normalised version string, or ``None`` when none is found.
        """

        for line in output.splitlines():
            version = self.normalize(line)
            if version is not None:
                return version
        return None

    def normalize(self, raw: str | None) -> str | None:
        """Return the normalised semantic version extracted from ``raw``.

        Args:
            raw: Raw version text captured from tooling output.

        Returns:
            str | None: Semantic version string, or ``None`` if parsing fails.
        """
        if not raw:
            return None
        match = self.VERSION_PATTERN.search(raw)
        if match is None:
            return None
        candidate = match.group(1)
        try:
            Version(candidate)
        except InvalidVersion:
            return None
        return candidate

    def is_compatible(self, actual: str | None, expected: str | None) -> bool:
        """Return whether ``actual`` satisfies the ``expected`` minimum version.

        Args:
            actual: Version string captured from tooling output.
            expected: Minimum version string required for compatibility.

        Returns:
            bool: ``True`` when the actual version meets or exceeds the expectation.
        """
        if expected is None:
            return True
        if actual is None:
            return False
        try:
            return Version(actual) >= Version(expected)
        except InvalidVersion:
            return False


__all__ = ["VersionResolver"]
