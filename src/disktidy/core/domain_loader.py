"""Scan domain discovery and loading."""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from types import ModuleType

from disktidy.models.domain import GroupedFilesDomain, ScanDomain, TypedGroupsDomain
from disktidy.core.registry import DomainRegistry

log = logging.getLogger(__name__)

# Abstract base classes that should not be instantiated
_ABSTRACT_BASES = {ScanDomain, GroupedFilesDomain, TypedGroupsDomain}


def _find_domains_in_module(module: ModuleType) -> list[type[ScanDomain]]:
    """Find all concrete ScanDomain subclasses defined in a module."""
    domains: list[type[ScanDomain]] = []
    for _, obj in inspect.getmembers(module, inspect.isclass):
        if (
            issubclass(obj, ScanDomain)
            and obj not in _ABSTRACT_BASES
            and not inspect.isabstract(obj)
            and obj.__module__ == module.__name__
        ):
            domains.append(obj)
    return domains


def _load_builtin_domains() -> list[type[ScanDomain]]:
    """Load domains from the disktidy.domains package."""
    import disktidy.domains as domains_pkg

    found: list[type[ScanDomain]] = []
    for _importer, modname, _ispkg in pkgutil.iter_modules(domains_pkg.__path__):
        try:
            module = importlib.import_module(f"disktidy.domains.{modname}")
            found.extend(_find_domains_in_module(module))
        except Exception:
            log.exception("Failed to load built-in domain module: %s", modname)
    return found


def load_domains(registry: DomainRegistry) -> None:
    """Discover and register all built-in scan domains."""
    for cls in _load_builtin_domains():
        try:
            registry.register(cls())
        except Exception:
            log.exception("Failed to instantiate domain: %s", cls.__name__)

    log.info("Loaded %d domains", len(registry))
