import re

import pytest

from layerscan.analyzer import AnalysisResult, AnalysisTarget
from layerscan.config_analyzers import (
    JSONConfigAnalyzer,
    TerraformConfigAnalyzer,
    TOMLConfigAnalyzer,
    YAMLConfigAnalyzer,
)
from layerscan.types import AnalyzerType, Config

DEPLOYMENT_JSON = b"""{
  "apiVersion": "apps/v1",
  "kind": "Deployment",
  "metadata": {"name": "hello-kubernetes"},
  "spec": {"replicas": 3}
}"""

ARRAY_JSON = b"""[
  {"apiVersion": "apps/v1", "kind": "Deployment",
   "metadata": {"name": "hello-kubernetes"}, "spec": {"replicas": 4}},
  {"apiVersion": "apps/v2", "kind": "Deployment",
   "metadata": {"name": "hello-kubernetes"}, "spec": {"replicas": 5}}
]"""

DEPLOYMENT_TOML = b"""apiVersion = "apps/v1"
kind = "Deployment"

[metadata]
name = "hello-kubernetes"

[spec]
replicas = 3
"""

DEPLOYMENT_YAML = b"""apiVersion: apps/v1
kind: Deployment
metadata:
  name: hello-kubernetes
spec:
  replicas: 3
"""

ANCHOR_YAML = b"""default: &default
  line: single line

fred: &fred
  fred_name: fred

john: &john
  john_name: john

main:
  <<: *default
  name:
    <<: [*fred, *john]
  comment: |
    multi
    line
"""

MULTIPLE_YAML = b"""apiVersion: apps/v1
kind: Deployment
metadata:
  name: hello-kubernetes
spec:
  replicas: 4
---
apiVersion: v1
kind: Service
metadata:
  name: hello-kubernetes
spec:
  ports:
  - protocol: TCP
    port: 80
    targetPort: 8080
"""

CIRCULAR_YAML = b"""circular: &circular
  name: *circular
"""


def _deployment(api="apps/v1", replicas=3):
    return {
        "apiVersion": api,
        "kind": "Deployment",
        "metadata": {"name": "hello-kubernetes"},
        "spec": {"replicas": replicas},
    }


def test_json_analyze_happy_path():
    got = JSONConfigAnalyzer(None).analyze(
        AnalysisTarget(file_path="testdata/deployment.json", content=DEPLOYMENT_JSON)
    )
    assert got == AnalysisResult(
        configs=[Config(type="json", file_path="testdata/deployment.json", content=_deployment())]
    )


def test_json_analyze_array():
    got = JSONConfigAnalyzer(None).analyze(
        AnalysisTarget(file_path="testdata/array.json", content=ARRAY_JSON)
    )
    assert got.configs[0].content == [_deployment(replicas=4), _deployment("apps/v2", 5)]


def test_json_analyze_broken():
    with pytest.raises(ValueError, match="unable to parse JSON"):
        JSONConfigAnalyzer(None).analyze(
            AnalysisTarget(file_path="testdata/broken.json", content=b'{"a": ')
        )


@pytest.mark.parametrize(
    "pattern, path, want",
    [
        (None, "deployment.json", True),
        (None, "deployment.yaml", False),
        (None, "package-lock.json", False),
        (None, "app/packages.lock.json", False),
        (re.compile("foo*"), "foo_file", True),
    ],
)
def test_json_required(pattern, path, want):
    assert JSONConfigAnalyzer(pattern).required(path, None) is want


def test_json_type():
    assert JSONConfigAnalyzer(None).analyzer_type == AnalyzerType.JSON


def test_toml_analyze_happy_path():
    got = TOMLConfigAnalyzer(None).analyze(
        AnalysisTarget(file_path="testdata/deployment.toml", content=DEPLOYMENT_TOML)
    )
    assert got == AnalysisResult(
        configs=[Config(type="toml", file_path="testdata/deployment.toml", content=_deployment())]
    )


def test_toml_analyze_broken():
    with pytest.raises(ValueError, match="unable to parse TOML"):
        TOMLConfigAnalyzer(None).analyze(
            AnalysisTarget(file_path="testdata/broken.toml", content=b"a = = 1")
        )


@pytest.mark.parametrize(
    "pattern, path, want",
    [
        (None, "deployment.toml", True),
        (None, "deployment.json", False),
        ("foo*", "foo_file", True),
    ],
)
def test_toml_required(pattern, path, want):
    assert TOMLConfigAnalyzer(pattern).required(path, None) is want


def test_toml_type():
    assert TOMLConfigAnalyzer(None).analyzer_type == AnalyzerType.TOML


def test_yaml_analyze_happy_path():
    got = YAMLConfigAnalyzer(None).analyze(
        AnalysisTarget(file_path="testdata/deployment.yaml", content=DEPLOYMENT_YAML)
    )
    assert got == AnalysisResult(
        configs=[Config(type="yaml", file_path="testdata/deployment.yaml", content=_deployment())]
    )


def test_yaml_analyze_anchors():
    got = YAMLConfigAnalyzer(None).analyze(
        AnalysisTarget(file_path="testdata/anchor.yaml", content=ANCHOR_YAML)
    )
    assert got.configs[0].content == {
        "default": {"line": "single line"},
        "fred": {"fred_name": "fred"},
        "john": {"john_name": "john"},
        "main": {
            "comment": "multi\nline\n",
            "line": "single line",
            "name": {"fred_name": "fred", "john_name": "john"},
        },
    }


def test_yaml_analyze_multiple_documents():
    got = YAMLConfigAnalyzer(None).analyze(
        AnalysisTarget(file_path="testdata/multiple.yaml", content=MULTIPLE_YAML)
    )
    assert [c.file_path for c in got.configs] == ["testdata/multiple.yaml"] * 2
    assert got.configs[0].content == _deployment(replicas=4)
    assert got.configs[1].content == {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": "hello-kubernetes"},
        "spec": {"ports": [{"port": 80, "protocol": "TCP", "targetPort": 8080}]},
    }


def test_yaml_analyze_broken():
    with pytest.raises(ValueError, match="unmarshal yaml"):
        YAMLConfigAnalyzer(None).analyze(
            AnalysisTarget(file_path="testdata/broken.yaml", content=b"foo: [bar\n")
        )


def test_yaml_analyze_circular_reference():
    with pytest.raises(ValueError, match="yaml: anchor 'circular' value contains itself"):
        YAMLConfigAnalyzer(None).analyze(
            AnalysisTarget(file_path="testdata/circular_references.yaml", content=CIRCULAR_YAML)
        )


@pytest.mark.parametrize(
    "pattern, path, want",
    [
        (None, "deployment.yaml", True),
        (None, "deployment.yml", True),
        (None, "deployment.json", False),
        (re.compile("foo*"), "foo_file", True),
    ],
)
def test_yaml_required(pattern, path, want):
    assert YAMLConfigAnalyzer(pattern).required(path, None) is want


def test_yaml_type():
    assert YAMLConfigAnalyzer(None).analyzer_type == AnalyzerType.YAML


def test_terraform_analyze_joins_dir():
    got = TerraformConfigAnalyzer().analyze(
        AnalysisTarget(dir_path="path/to/", file_path="main.tf")
    )
    assert got == AnalysisResult(configs=[Config(type="terraform", file_path="path/to/main.tf")])


@pytest.mark.parametrize(
    "path, want",
    [("/path/to/main.tf", True), ("/path/to/main.hcl", False), ("deployment.yaml", False)],
)
def test_terraform_required(path, want):
    assert TerraformConfigAnalyzer().required(path, None) is want