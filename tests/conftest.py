"""Shared test fixtures for specreg.

Provides reusable fixtures for loading document fixtures, building
registries, creating isolated config environments, managing output state,
and running CLI commands. These fixtures are automatically discovered by
pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from specreg.output import OutputFormat, OutputManager, reset_output, set_output
from specreg.parser.document import DocumentStore
from specreg.registry import OperationRegistry
from specreg.schema.registry import SchemaRegistry


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during a
    test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Raw document fixtures (plain dicts loaded from JSON files)
# ---------------------------------------------------------------------------


def _load_fixture(name: str) -> dict[str, Any]:
    with open(FIXTURES_DIR / name) as f:
        return json.load(f)


@pytest.fixture
def petstore_raw() -> dict[str, Any]:
    """Raw OpenAPI 3.0 petstore document."""
    return _load_fixture("petstore_3.0.json")


@pytest.fixture
def k8s_raw() -> dict[str, Any]:
    """Raw Swagger 2.0 subset of the Kubernetes core/v1 API."""
    return _load_fixture("k8s_core_v1.json")


@pytest.fixture
def recursive_raw() -> dict[str, Any]:
    """Raw OpenAPI 3.1 document with recursive, composed and broken schemas."""
    return _load_fixture("recursive_schemas.json")


# ---------------------------------------------------------------------------
# Store / registry fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_store(petstore_raw: dict[str, Any]) -> DocumentStore:
    return DocumentStore(petstore_raw)


@pytest.fixture
def k8s_store(k8s_raw: dict[str, Any]) -> DocumentStore:
    return DocumentStore(k8s_raw)


@pytest.fixture
def petstore_registry(petstore_store: DocumentStore) -> OperationRegistry:
    """Operation registry built from the petstore document."""
    return OperationRegistry.build(petstore_store)


@pytest.fixture
def k8s_registry(k8s_store: DocumentStore) -> OperationRegistry:
    """Operation registry built from the Kubernetes subset."""
    return OperationRegistry.build(k8s_store)


@pytest.fixture
def recursive_schemas(recursive_raw: dict[str, Any]) -> SchemaRegistry:
    """Schema registry over the recursive-schemas document."""
    return SchemaRegistry(DocumentStore(recursive_raw))


@pytest.fixture
def petstore_schemas(petstore_store: DocumentStore) -> SchemaRegistry:
    return SchemaRegistry(petstore_store)


@pytest.fixture
def k8s_schemas(k8s_store: DocumentStore) -> SchemaRegistry:
    return SchemaRegistry(k8s_store)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME at a subdirectory of tmp_path so that tests
    never touch real user config, clears all SPECREG_* environment
    variables, and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    for var in ["SPECREG_SPEC", "SPECREG_SERVER", "SPECREG_TOKEN", "SPECREG_INSECURE"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
