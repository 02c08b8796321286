"""Pytest configuration for platform-resolver tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from platform_resolver.errors import FailedToResolveNameError
from platform_resolver.models import ResolutionRequest
from platform_resolver.settings import ResolverSettings


class FakePrimitive:
    """Primitive resolver backed by a specifier -> result table; records calls.

    Unknown specifiers raise FailedToResolveNameError. Exception values in the
    table are raised instead of returned.
    """

    def __init__(self, results=None):
        self.results = dict(results or {})
        self.calls: list[tuple[str, str | None]] = []
        self.contexts = []

    def __call__(self, context, specifier, platform):
        self.calls.append((specifier, platform))
        self.contexts.append(context)
        result = self.results.get(specifier)
        if result is None:
            raise FailedToResolveNameError(specifier, context.origin_path)
        if isinstance(result, BaseException):
            raise result
        return result


def write_files(root: Path, files: dict[str, str | dict]) -> None:
    """Create files under root; dict values are written as JSON."""
    for relative, contents in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(contents, dict):
            contents = json.dumps(contents)
        path.write_text(contents, encoding="utf-8")


def make_request(specifier: str, origin: str | Path = "/project/App.js", **kwargs) -> ResolutionRequest:
    return ResolutionRequest(specifier=specifier, origin_path=Path(origin), **kwargs)


PROJECT_FILES: dict[str, str | dict] = {
    "package.json": {"name": "app", "main": "App.js"},
    "App.js": "import 'react-native';\n",
    "src/screens/Home.js": "export default null;\n",
    "src/utils/format.ts": "export const format = (v: string) => v;\n",
    "node_modules/react-native/package.json": {"name": "react-native", "main": "index.js"},
    "node_modules/react-native/index.js": "module.exports = {};\n",
    "node_modules/react-native-web/package.json": {"name": "react-native-web", "main": "dist/index.js"},
    "node_modules/react-native-web/dist/index.js": "module.exports = {};\n",
    "node_modules/react-native-web/dist/exports/Image/index.js": "module.exports = {};\n",
    "node_modules/react-native-web/dist/modules/AssetRegistry/index.js": "module.exports = {};\n",
    "node_modules/@react-native/assets-registry/package.json": {"name": "@react-native/assets-registry"},
    "node_modules/@react-native/assets-registry/registry.js": "module.exports = {};\n",
    "node_modules/event-target-shim/package.json": {"name": "event-target-shim", "main": "index.js"},
    "node_modules/event-target-shim/index.js": "module.exports = {};\n",
    "node_modules/event-target-shim/dist/event-target-shim.js": "module.exports = {};\n",
    "node_modules/react/package.json": {"name": "react", "main": "index.js"},
    "node_modules/react/index.js": "module.exports = require('./cjs/react.production.min.js');\n",
    "node_modules/react/cjs/react.production.min.js": "module.exports = {};\n",
}


@pytest.fixture
def fake_primitive():
    return FakePrimitive()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small React Native project with a few installed packages."""
    root = tmp_path.resolve() / "app"
    root.mkdir()
    write_files(root, PROJECT_FILES)
    return root


@pytest.fixture
def settings(project: Path) -> ResolverSettings:
    return ResolverSettings(project_root=project)
