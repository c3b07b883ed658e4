"""Analyzer registry, analysis results and the file/config dispatcher."""

from __future__ import annotations

import logging
import os
import stat
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Protocol

from layerscan.types import (
    DEBIAN,
    OS,
    REDHAT,
    AnalyzeOSError,
    Application,
    Config,
    Package,
    PackageInfo,
)

logger = logging.getLogger(__name__)


@dataclass
class AnalysisTarget:
    """A file handed to an analyzer."""

    dir_path: str = ""
    file_path: str = ""
    content: bytes = b""


@dataclass
class AnalysisResult:
    """What analyzers found; safe to merge into from several threads."""

    os: OS | None = None
    package_infos: list[PackageInfo] = field(default_factory=list)
    applications: list[Application] = field(default_factory=list)
    configs: list[Config] = field(default_factory=list)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def is_empty(self) -> bool:
        return (
            self.os is None
            and not self.package_infos
            and not self.applications
            and not self.configs
        )

    def sort(self) -> None:
        """Order everything so results are deterministic."""
        self.package_infos.sort(key=lambda pi: pi.file_path)
        for pi in self.package_infos:
            pi.packages.sort(key=lambda p: p.name)
        self.applications.sort(key=lambda app: app.file_path)
        for app in self.applications:
            app.libraries.sort(key=lambda li: (li.library.name, li.library.version))

    def merge(self, new: AnalysisResult | None) -> None:
        if new is None or new.is_empty():
            return
        with self._lock:
            if new.os is not None:
                # Oracle Linux also ships /etc/redhat-release and Ubuntu ships
                # /etc/debian_version; the more specific OS must win.
                if self.os is None or self.os.family in (REDHAT, DEBIAN):
                    self.os = new.os
            self.package_infos.extend(new.package_infos)
            self.applications.extend(new.applications)
            self.configs.extend(new.configs)


class _FileAnalyzer(Protocol):
    analyzer_type: str
    version: int

    def analyze(self, target: AnalysisTarget) -> AnalysisResult | None: ...

    def required(self, file_path: str, info: os.stat_result | None) -> bool: ...


class _ConfigAnalyzer(Protocol):
    analyzer_type: str
    version: int

    def analyze(self, target_os: OS, config_blob: bytes) -> list[Package] | None: ...

    def required(self, target_os: OS) -> bool: ...


_analyzers: dict[str, _FileAnalyzer] = {}
_config_analyzers: dict[str, _ConfigAnalyzer] = {}


def register_analyzer(analyzer: _FileAnalyzer) -> None:
    """Register a file analyzer under its type, replacing any previous one."""
    _analyzers[str(analyzer.analyzer_type)] = analyzer


def register_config_analyzer(analyzer: _ConfigAnalyzer) -> None:
    """Register an image config analyzer under its type."""
    _config_analyzers[str(analyzer.analyzer_type)] = analyzer


def unregister(analyzer_type: str) -> None:
    """Remove any analyzer registered under the given type."""
    _analyzers.pop(str(analyzer_type), None)
    _config_analyzers.pop(str(analyzer_type), None)


def check_package(pkg: Package) -> bool:
    return bool(pkg.name) and bool(pkg.version)


class Analyzer:
    """Dispatches files and image configs to the enabled analyzers."""

    def __init__(self, disabled_analyzers: Iterable[str] | None = None) -> None:
        self.disabled_analyzers = {str(t) for t in (disabled_analyzers or ())}
        self._drivers = [
            a for t, a in _analyzers.items() if t not in self.disabled_analyzers
        ]
        self._config_drivers = [
            a for t, a in _config_analyzers.items() if t not in self.disabled_analyzers
        ]

    def analyzer_versions(self) -> dict[str, int]:
        """Versions of all registered file analyzers; 0 for disabled ones."""
        return {
            t: 0 if t in self.disabled_analyzers else a.version
            for t, a in _analyzers.items()
        }

    def image_config_analyzer_versions(self) -> dict[str, int]:
        """Versions of all registered config analyzers; 0 for disabled ones."""
        return {
            t: 0 if t in self.disabled_analyzers else a.version
            for t, a in _config_analyzers.items()
        }

    def analyze_file(
        self,
        executor: Executor,
        result: AnalysisResult,
        dir_path: str,
        file_path: str,
        info: os.stat_result,
        opener: Callable[[], bytes],
    ) -> list[Future]:
        """Submit every analyzer that wants this file; return the futures.

        Results are merged into ``result`` as each analysis finishes.
        Raises OSError when the file cannot be opened.
        """
        if stat.S_ISDIR(info.st_mode):
            return []
        futures: list[Future] = []
        relative = file_path.lstrip("/")
        for driver in self._drivers:
            if not driver.required(relative, info):
                continue
            try:
                content = opener()
            except Exception as err:
                raise OSError(f"unable to open a file ({file_path}): {err}") from err
            target = AnalysisTarget(dir_path=dir_path, file_path=file_path, content=content)
            futures.append(executor.submit(self._run, driver, target, result))
        return futures

    @staticmethod
    def _run(driver: _FileAnalyzer, target: AnalysisTarget, result: AnalysisResult) -> None:
        try:
            found = driver.analyze(target)
        except AnalyzeOSError:
            return
        except Exception as err:
            logger.debug("Analysis error: %s", err)
            return
        result.merge(found)

    def analyze_image_config(self, target_os: OS, config_blob: bytes) -> list[Package] | None:
        """Packages from the first config analyzer that applies and succeeds."""
        for driver in self._config_drivers:
            if not driver.required(target_os):
                continue
            try:
                return driver.analyze(target_os, config_blob)
            except Exception as err:
                logger.debug("Image config analysis error: %s", err)
                continue
        return None