# layerscan

`layerscan` inspects the files of a container image layer or a directory tree and
reports what it finds:

- **operating system**: Alpine, Amazon Linux, Debian, Ubuntu, Photon OS, Red Hat,
  CentOS, Fedora, Oracle Linux, openSUSE (Leap, Tumbleweed) and SLES, read from
  their release files (`layerscan.os_release`);
- **application dependencies**: from lock files (`Gemfile.lock`, `Cargo.lock`,
  `composer.lock`, `go.sum`, `package-lock.json`, `packages.lock.json`,
  `Pipfile.lock`, `poetry.lock`, `yarn.lock`), jar/war/ear archives and
  executable files, using parsers you supply (`layerscan.library_analyzers`);
- **configuration files**: JSON, TOML, YAML (each `---` sub-document becomes its
  own config) and Terraform (`layerscan.config_analyzers`);
- **packages installed by `apk add`** in an image's build history, with versions
  guessed from an APKINDEX history archive (`layerscan.apk_command`).

## Installation

```
pip install layerscan
```

## Usage

Analyzers live in a global registry. `layerscan.defaults.register_all` registers
the OS analyzers, the `apk add` history analyzer and one library analyzer for each
parser you pass in. The mapping's keys are analyzer types such as `"bundler"`,
`"npm"`, `"jar"` or `"gobinary"`. A lock file parser takes a binary stream and
returns an iterable of `layerscan.types.Library`. The jar parser also receives the
file path as a second argument. `register_all` returns the registered types.

An `Analyzer` runs every enabled analyzer that wants a file. `analyze_file`
submits the work to an executor, merges the results into an `AnalysisResult`,
and returns the futures. Directories are skipped:

```python
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from layerscan.analyzer import AnalysisResult, Analyzer
from layerscan.defaults import register_all

register_all({})

analyzer = Analyzer([])
result = AnalysisResult()
root = Path("rootfs")

with ThreadPoolExecutor(max_workers=3) as executor:
    for path in root.rglob("*"):
        rel = path.relative_to(root).as_posix()
        analyzer.analyze_file(
            executor, result, str(root), rel, path.stat(), path.read_bytes
        )

result.sort()
print(result.os)
for app in result.applications:
    print(app.type, app.file_path, len(app.libraries))
```

When results are merged, a detected Red Hat or Debian OS gives way to a more
specific one found later, such as Oracle Linux or Ubuntu.

To turn off some analyzers, pass their types when you build the `Analyzer`:

```python
from layerscan.types import AnalyzerType

analyzer = Analyzer([AnalyzerType.ALPINE, AnalyzerType.UBUNTU])
print(analyzer.analyzer_versions())  # disabled analyzers report version 0
```

`layerscan.analyzer.unregister` removes an analyzer from the registry, and
`check_package` tells whether a package has both a name and a version.

### Configuration files

`layerscan.config.register_config_analyzers` registers the JSON, TOML, YAML and
Terraform analyzers. It takes patterns of the form `type:regexp`, so that files
whose names would not normally be picked up are still analyzed:

```python
from layerscan.config import register_config_analyzers

register_config_analyzers(["yaml:^manifests/.*\\.conf$", "json:settings_.*"])
```

The accepted types are `dockerfile`, `hcl`, `json`, `toml` and `yaml`. A pattern
without a `:`, an invalid regular expression or an unknown type raises
`ValueError`. `ScannerOption` holds scanner settings, and its `sort()` method puts
each list in order.

### Image history

`AlpineCommandAnalyzer` reads an image config blob (JSON) and finds `apk add`
commands in the layer history. Environment variables in the commands are
expanded. It resolves each package's dependencies from an APKINDEX archive and
picks the newest version built before the layer was created. It applies only to
Alpine.

The archive location is given as `index_url` or by the
`LAYERSCAN_APK_INDEX_ARCHIVE_URL` environment variable. It can be an `http(s)://`
or a `file://` URL. A `%s` in it is replaced by the Alpine minor version, so
`3.9.3` becomes `3.9`. When no location is set, fetching raises `ValueError`.

```python
from layerscan.analyzer import Analyzer
from layerscan.types import OS

packages = Analyzer([]).analyze_image_config(OS(family="alpine", name="3.9.3"), config_blob)
```

`analyze_image_config` returns the packages from the first config analyzer that
applies and succeeds. It returns `None` when none does.

## Errors

Each analyzer raises an exception when its input cannot be read, usually a
`ValueError`. OS analyzers raise `layerscan.types.AnalyzeOSError` when a release
file does not name their distribution. In the background work started by
`Analyzer.analyze_file`, these failures are dropped and only successful results
are merged. `analyze_file` itself raises `OSError` when the file cannot be opened.

## What it does not do

- It has no command-line interface and does not walk images or archives by
  itself. You feed it files.
- It ships no lock file, archive or binary parsers. The library analyzers need
  the parsers you give them.
- It does not read OS package databases (apk, dpkg, rpm), although those types
  appear in `AnalyzerType`.
- It has no Dockerfile or HCL analyzers. Patterns for those types are accepted
  by `register_config_analyzers` but have no effect.
- It does not evaluate policies and does not cache results.