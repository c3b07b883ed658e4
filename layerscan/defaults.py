"""Registration of every built-in analyzer."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from layerscan.analyzer import register_analyzer, register_config_analyzer
from layerscan.apk_command import AlpineCommandAnalyzer
from layerscan.library_analyzers import library_analyzers
from layerscan.os_release import (
    AlpineOSAnalyzer,
    AmazonLinuxOSAnalyzer,
    CentOSAnalyzer,
    DebianOSAnalyzer,
    FedoraOSAnalyzer,
    OracleOSAnalyzer,
    PhotonOSAnalyzer,
    RedHatOSAnalyzer,
    SuseOSAnalyzer,
    UbuntuOSAnalyzer,
)

_OS_ANALYZERS = (
    AlpineOSAnalyzer,
    AmazonLinuxOSAnalyzer,
    DebianOSAnalyzer,
    PhotonOSAnalyzer,
    RedHatOSAnalyzer,
    CentOSAnalyzer,
    FedoraOSAnalyzer,
    OracleOSAnalyzer,
    SuseOSAnalyzer,
    UbuntuOSAnalyzer,
)


def register_all(parsers: Mapping[str, Callable[..., Any]] | None = None) -> list[str]:
    """Register the OS, library and image command analyzers.

    ``parsers`` maps library analyzer types to their parsers; a library
    analyzer is registered only when a parser is given for it.
    Returns the registered analyzer types.
    """
    registered: list[str] = []
    for cls in _OS_ANALYZERS:
        analyzer = cls()
        register_analyzer(analyzer)
        registered.append(str(analyzer.analyzer_type))
    for analyzer in library_analyzers(parsers or {}):
        register_analyzer(analyzer)
        registered.append(str(analyzer.analyzer_type))
    command = AlpineCommandAnalyzer()
    register_config_analyzer(command)
    registered.append(str(command.analyzer_type))
    return registered