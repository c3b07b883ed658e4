import os
from concurrent.futures import ThreadPoolExecutor, wait

import pytest

from layerscan.analyzer import (
    AnalysisResult,
    Analyzer,
    check_package,
    register_config_analyzer,
    unregister,
)
from layerscan.defaults import register_all
from layerscan.types import (
    OS,
    AnalyzerType,
    Application,
    Library,
    LibraryInfo,
    Package,
)


def _bundler(stream):
    if stream.read():
        return [Library(name="actioncable", version="5.2.3")]
    return []


def _nothing(*args):
    return []


PARSERS = {
    "bundler": _bundler,
    "cargo": _nothing,
    "composer": _nothing,
    "gobinary": _nothing,
    "gomod": _nothing,
    "jar": _nothing,
    "npm": _nothing,
    "nuget": _nothing,
    "pipenv": _nothing,
    "poetry": _nothing,
    "yarn": _nothing,
}


@pytest.fixture
def registered():
    types = register_all(PARSERS)
    yield types
    for t in types:
        unregister(t)


class _MockConfigAnalyzer:
    analyzer_type = "test"
    version = 1

    def required(self, target_os):
        return target_os.family == "alpine"

    def analyze(self, target_os, config_blob):
        if config_blob != b"foo":
            raise ValueError("error")
        return [Package(name="musl", version="1.1.24-r2")]


@pytest.fixture
def mock_config():
    unregister(AnalyzerType.APK_COMMAND)
    register_config_analyzer(_MockConfigAnalyzer())
    yield
    unregister("test")


def _run(disabled, file_path, stat_path, opener):
    result = AnalysisResult()
    a = Analyzer(disabled)
    info = os.stat(stat_path)
    with ThreadPoolExecutor(max_workers=3) as executor:
        futures = a.analyze_file(executor, result, "", file_path, info, opener)
        wait(futures)
    return result


@pytest.fixture
def files(tmp_path):
    alpine = tmp_path / "alpine-release"
    alpine.write_text("3.11.6\n")
    gemfile = tmp_path / "Gemfile.lock"
    gemfile.write_text("GEM\n  specs:\n    actioncable (5.2.3)\n")
    hostname = tmp_path / "hostname"
    hostname.write_text("localhost\n")
    return {"alpine": alpine, "gemfile": gemfile, "hostname": hostname, "dir": tmp_path}


def test_register_all_returns_types(registered):
    assert "alpine" in registered
    assert "bundler" in registered
    assert "apk-command" in registered
    assert len(registered) == len(set(registered))


def test_register_all_rejects_unknown_parser():
    with pytest.raises(ValueError):
        register_all({"not-a-type": _nothing})


def test_analyze_file_os(registered, files):
    path = files["alpine"]
    got = _run(None, "/etc/alpine-release", path, path.read_bytes)
    assert got == AnalysisResult(os=OS(family="alpine", name="3.11.6"))


def test_analyze_file_disabled_os(registered, files):
    path = files["alpine"]
    got = _run([AnalyzerType.ALPINE], "/etc/alpine-release", path, path.read_bytes)
    assert got == AnalysisResult()


def test_analyze_file_library(registered, files):
    path = files["gemfile"]
    got = _run(None, "/app/Gemfile.lock", path, path.read_bytes)
    assert got == AnalysisResult(
        applications=[
            Application(
                type="bundler",
                file_path="/app/Gemfile.lock",
                libraries=[LibraryInfo(library=Library(name="actioncable", version="5.2.3"))],
            )
        ]
    )


def test_analyze_file_invalid_os_information(registered, files):
    path = files["hostname"]
    got = _run(None, "/etc/lsb-release", path, path.read_bytes)
    assert got == AnalysisResult()


def test_analyze_file_directory(registered, files):
    got = _run(None, "/etc/lsb-release", files["dir"], lambda: b"")
    assert got == AnalysisResult()


def test_analyze_file_opener_error(registered, files):
    def opener():
        raise OSError("error")

    with pytest.raises(OSError, match=r"unable to open a file \(/app/Gemfile.lock\)"):
        _run(None, "/app/Gemfile.lock", files["gemfile"], opener)


EXPECTED_VERSIONS = {
    "alpine": 1,
    "amazon": 1,
    "bundler": 1,
    "cargo": 1,
    "centos": 1,
    "composer": 1,
    "debian": 1,
    "fedora": 1,
    "gobinary": 1,
    "gomod": 1,
    "jar": 1,
    "npm": 1,
    "nuget": 1,
    "oracle": 1,
    "photon": 1,
    "pipenv": 1,
    "poetry": 1,
    "redhat": 1,
    "suse": 1,
    "ubuntu": 1,
    "yarn": 1,
}


def test_analyzer_versions(registered):
    got = Analyzer([]).analyzer_versions()
    assert {k: got[k] for k in EXPECTED_VERSIONS} == EXPECTED_VERSIONS


def test_analyzer_versions_disabled(registered):
    got = Analyzer([AnalyzerType.ALPINE, AnalyzerType.UBUNTU]).analyzer_versions()
    want = dict(EXPECTED_VERSIONS, alpine=0, ubuntu=0)
    assert {k: got[k] for k in want} == want


def test_image_config_analyzer_versions(registered):
    assert Analyzer([]).image_config_analyzer_versions()["apk-command"] == 1
    disabled = Analyzer([AnalyzerType.ALPINE, AnalyzerType.APK_COMMAND])
    assert disabled.image_config_analyzer_versions()["apk-command"] == 0


def test_image_config_versions_with_mock(mock_config):
    got = Analyzer([]).image_config_analyzer_versions()
    assert got["test"] == 1


@pytest.mark.parametrize(
    "target_os, blob, want",
    [
        (OS(family="alpine", name="3.11.6"), b"foo", [Package(name="musl", version="1.1.24-r2")]),
        (OS(family="debian", name="9.2"), b"foo", None),
        (OS(family="alpine", name="3.11.6"), b"bar", None),
    ],
)
def test_analyze_image_config(mock_config, target_os, blob, want):
    assert Analyzer(None).analyze_image_config(target_os, blob) == want


@pytest.mark.parametrize(
    "pkg, want",
    [
        (Package(name="musl", version="1.2.3"), True),
        (Package(name="", version="1.2.3"), False),
        (Package(name="musl", version=""), False),
    ],
)
def test_check_package(pkg, want):
    assert check_package(pkg) is want