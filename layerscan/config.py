"""Scanner options and registration of the structured config analyzers."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from layerscan.analyzer import register_analyzer
from layerscan.config_analyzers import (
    JSONConfigAnalyzer,
    TerraformConfigAnalyzer,
    TOMLConfigAnalyzer,
    YAMLConfigAnalyzer,
)
from layerscan.types import AnalyzerType

_SEPARATOR = ":"

_PATTERN_TYPES = (
    AnalyzerType.DOCKERFILE,
    AnalyzerType.HCL,
    AnalyzerType.JSON,
    AnalyzerType.TOML,
    AnalyzerType.YAML,
)


@dataclass
class ScannerOption:
    """Options for scanning configuration files."""

    trace: bool = False
    namespaces: list[str] = field(default_factory=list)
    file_patterns: list[str] = field(default_factory=list)
    policy_paths: list[str] = field(default_factory=list)
    data_paths: list[str] = field(default_factory=list)

    def sort(self) -> None:
        """Sort every list so the options compare and hash stably."""
        self.namespaces.sort()
        self.file_patterns.sort()
        self.policy_paths.sort()
        self.data_paths.sort()


def register_config_analyzers(file_patterns: Iterable[str]) -> None:
    """Register the config analyzers, widened by ``type:regexp`` patterns.

    Raises ValueError for a malformed pattern, a bad regexp or an unknown type.
    """
    patterns: dict[str, re.Pattern[str]] = {}
    for entry in file_patterns:
        # e.g. "dockerfile:my_dockerfile_*"
        file_type, sep, pattern = entry.partition(_SEPARATOR)
        if not sep:
            raise ValueError(f"invalid file pattern ({entry})")
        try:
            compiled = re.compile(pattern)
        except re.error as err:
            raise ValueError(f"invalid file regexp ({entry}): {err}") from err
        if file_type not in _PATTERN_TYPES:
            raise ValueError(f"unknown file type: {file_type}, pattern: {pattern}")
        patterns[file_type] = compiled

    register_analyzer(JSONConfigAnalyzer(patterns.get(AnalyzerType.JSON)))
    register_analyzer(TerraformConfigAnalyzer())
    register_analyzer(TOMLConfigAnalyzer(patterns.get(AnalyzerType.TOML)))
    register_analyzer(YAMLConfigAnalyzer(patterns.get(AnalyzerType.YAML)))