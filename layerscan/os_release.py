"""Analyzers that detect the operating system from release files."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator

from layerscan.analyzer import AnalysisResult, AnalysisTarget
from layerscan.types import (
    ALPINE,
    AMAZON,
    CENTOS,
    DEBIAN,
    FEDORA,
    OPENSUSE,
    OPENSUSE_LEAP,
    OPENSUSE_TUMBLEWEED,
    OS,
    ORACLE,
    PHOTON,
    REDHAT,
    SLES,
    UBUNTU,
    AnalyzeOSError,
    AnalyzerType,
)

_REDHAT_RE = re.compile(r"(.*) release (\d[\d.]*)")

_OS_RELEASE_FILES = ("usr/lib/os-release", "etc/os-release")


def _lines(content: bytes) -> Iterator[str]:
    """Yield the lines of ``content`` without their line endings."""
    text = content.decode("utf-8", errors="replace")
    if not text:
        return
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    for part in parts:
        yield part.removesuffix("\r")


def _result(family: str, name: str) -> AnalysisResult:
    return AnalysisResult(os=OS(family=family, name=name))


class OSReleaseAnalyzer:
    """Base for analyzers that read a fixed set of release files."""

    analyzer_type: AnalyzerType
    version: int = 1
    required_files: tuple[str, ...] = ()

    def required(self, file_path: str, info: os.stat_result | None) -> bool:
        return file_path in self.required_files

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        raise NotImplementedError


class AlpineOSAnalyzer(OSReleaseAnalyzer):
    """Reads the Alpine version from /etc/alpine-release."""

    analyzer_type = AnalyzerType.ALPINE
    required_files = ("etc/alpine-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in _lines(target.content):
            return _result(ALPINE, line)
        raise AnalyzeOSError("alpine")


class AmazonLinuxOSAnalyzer(OSReleaseAnalyzer):
    """Reads the Amazon Linux release from /etc/system-release."""

    analyzer_type = AnalyzerType.AMAZON
    required_files = ("etc/system-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in _lines(target.content):
            fields = line.split()
            if line.startswith("Amazon Linux release 2"):
                if len(fields) < 5:
                    continue
                return _result(AMAZON, f"{fields[3]} {fields[4]}")
            if line.startswith("Amazon Linux"):
                return _result(AMAZON, " ".join(fields[2:]))
        raise AnalyzeOSError("amazon")


class DebianOSAnalyzer(OSReleaseAnalyzer):
    """Reads the Debian version from /etc/debian_version."""

    analyzer_type = AnalyzerType.DEBIAN
    required_files = ("etc/debian_version",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in _lines(target.content):
            return _result(DEBIAN, line)
        raise AnalyzeOSError("debian")


class PhotonOSAnalyzer(OSReleaseAnalyzer):
    """Detects VMware Photon OS from os-release."""

    analyzer_type = AnalyzerType.PHOTON
    required_files = _OS_RELEASE_FILES

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        family = ""
        for line in _lines(target.content):
            if line.startswith('NAME="VMware Photon'):
                family = PHOTON
                continue
            if family and line.startswith("VERSION_ID="):
                return _result(family, line[len("VERSION_ID="):].strip())
        raise AnalyzeOSError("photon")


class RedHatOSAnalyzer(OSReleaseAnalyzer):
    """Reads /etc/redhat-release, which several derived distributions ship."""

    analyzer_type = AnalyzerType.REDHAT_BASE
    required_files = ("etc/redhat-release",)

    _FAMILIES = {
        "centos": CENTOS,
        "centos linux": CENTOS,
        "oracle": ORACLE,
        "oracle linux": ORACLE,
        "oracle linux server": ORACLE,
        "fedora": FEDORA,
        "fedora linux": FEDORA,
    }

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in _lines(target.content):
            match = _REDHAT_RE.search(line.strip())
            if match is None:
                raise ValueError("redhat: invalid redhat-release")
            family = self._FAMILIES.get(match.group(1).lower(), REDHAT)
            return _result(family, match.group(2))
        raise AnalyzeOSError("redhatbase")


class CentOSAnalyzer(OSReleaseAnalyzer):
    """Reads the CentOS release from /etc/centos-release."""

    analyzer_type = AnalyzerType.CENTOS
    required_files = ("etc/centos-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in _lines(target.content):
            match = _REDHAT_RE.search(line.strip())
            if match is None:
                raise ValueError("centos: invalid centos-release")
            if match.group(1).lower() in ("centos", "centos linux"):
                return _result(CENTOS, match.group(2))
        raise AnalyzeOSError("centos")


class FedoraOSAnalyzer(OSReleaseAnalyzer):
    """Reads the Fedora release from fedora-release."""

    analyzer_type = AnalyzerType.FEDORA
    required_files = ("etc/fedora-release", "usr/lib/fedora-release")

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in _lines(target.content):
            match = _REDHAT_RE.search(line.strip())
            if match is None:
                raise ValueError("fedora: invalid fedora-release")
            if match.group(1).lower() in ("fedora", "fedora linux"):
                return _result(FEDORA, match.group(2))
        raise AnalyzeOSError("fedora")


class OracleOSAnalyzer(OSReleaseAnalyzer):
    """Reads the Oracle Linux release from /etc/oracle-release."""

    analyzer_type = AnalyzerType.ORACLE
    required_files = ("etc/oracle-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in _lines(target.content):
            match = _REDHAT_RE.search(line.strip())
            if match is None:
                raise ValueError("oracle: invalid oracle-release")
            return _result(ORACLE, match.group(2))
        raise AnalyzeOSError("oracle")


class SuseOSAnalyzer(OSReleaseAnalyzer):
    """Detects openSUSE and SLES from os-release."""

    analyzer_type = AnalyzerType.SUSE
    required_files = _OS_RELEASE_FILES

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        family = ""
        for line in _lines(target.content):
            if line.startswith('NAME="openSUSE'):
                if "Leap" in line:
                    family = OPENSUSE_LEAP
                elif "Tumbleweed" in line:
                    family = OPENSUSE_TUMBLEWEED
                else:
                    family = OPENSUSE
                continue
            if line.startswith('NAME="SLES'):
                family = SLES
                continue
            if family and line.startswith("VERSION_ID="):
                # VERSION_ID="15.1" -> 15.1
                return _result(family, line[12:-1].strip())
        raise AnalyzeOSError("suse")


class UbuntuOSAnalyzer(OSReleaseAnalyzer):
    """Detects Ubuntu from /etc/lsb-release."""

    analyzer_type = AnalyzerType.UBUNTU
    required_files = ("etc/lsb-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        is_ubuntu = False
        for line in _lines(target.content):
            if line == "DISTRIB_ID=Ubuntu":
                is_ubuntu = True
                continue
            if is_ubuntu and line.startswith("DISTRIB_RELEASE="):
                return _result(UBUNTU, line[len("DISTRIB_RELEASE="):].strip())
        raise AnalyzeOSError("ubuntu")