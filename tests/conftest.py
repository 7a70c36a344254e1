# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {"id": "clean-settings", "name": "clean_settings", "anchor": "fixture-clean-settings", "kind": "fixture"},
#     {"id": "registry", "name": "registry", "anchor": "fixture-registry", "kind": "fixture"},
#     {"id": "scenario-registry", "name": "scenario_registry", "anchor": "fixture-scenario-registry", "kind": "fixture"}
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Adds ``src`` to ``sys.path`` when the package is not installed, isolates the
cached settings from the developer's environment, and provides registries
pre-loaded with the ``baseline``/``foo`` handlers used across the suite.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Generator

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from FqdnFacts.conversions import value_map  # noqa: E402
from FqdnFacts.handler import HandlerBuilder  # noqa: E402
from FqdnFacts.registry import HandlerRegistry  # noqa: E402
from FqdnFacts.settings import invalidate_settings_cache  # noqa: E402


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop debug/settings variables so every test starts from defaults."""

    for name in ("DEBUG", "FQDN_FACTS_DEBUG", "FQDN_FACTS_LOG_LEVEL", "FQDN_FACTS_LOG_FORMAT",
                 "FQDN_FACTS_MAX_RESOLUTION_PASSES"):
        monkeypatch.delenv(name, raising=False)
    invalidate_settings_cache()
    yield
    invalidate_settings_cache()


def configure_baseline(builder: HandlerBuilder) -> None:
    (
        builder.priority(10)
        .components("host", "sub", "tld")
        .component("host", {"type": r"^([^\d]+)", "id": r"(\d+)", "subtype": r"([ms]?)"})
        .component("tld", "example.com")
        .convert("host", {"subtype": value_map({"m": "master", "s": "slave"}), "id": "to-int"})
        .fact("hname", lambda facts: facts["hostname"])
        .fact("hostname", lambda facts: facts["host"])
        .fact("domain", lambda facts: ".".join([facts["sub"], facts["tld"]]))
    )


def configure_foo(builder: HandlerBuilder) -> None:
    builder.priority(15).components("sub", "tld")


@pytest.fixture
def registry() -> HandlerRegistry:
    return HandlerRegistry()


@pytest.fixture
def scenario_registry(registry: HandlerRegistry) -> HandlerRegistry:
    """Registry holding ``baseline`` and its clone ``foo``."""

    registry.register("baseline", configure_baseline)
    registry.register("foo", configure_foo, copy_from="baseline")
    return registry
