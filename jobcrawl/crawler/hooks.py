"""Loading and running the optional record enrichment hook.

A hook is a plain callable that receives the parsed detail document and
returns a mapping of extra fields. Host programs pass the callable directly;
config files name it by import path (`package.module:function`).
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping
from typing import Any

from bs4 import BeautifulSoup

from .errors import ConfigurationError, EnrichmentHookError


EnrichmentHook = Callable[[BeautifulSoup], Mapping[str, Any]]


def load_enrichment_hook(target: str | EnrichmentHook | None) -> EnrichmentHook | None:
    """Resolve a hook from a callable or a `module:attr` import path."""

    if target is None:
        return None
    if callable(target):
        return target

    spec = str(target).strip()
    if not spec:
        return None

    if ":" in spec:
        module_name, _, attr_path = spec.partition(":")
    else:
        module_name, _, attr_path = spec.rpartition(".")
    if not module_name or not attr_path:
        raise ConfigurationError(
            f"Enrichment hook must look like 'package.module:function', got {spec!r}"
        )

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import enrichment hook module {module_name!r}: {exc}") from exc

    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as exc:
            raise ConfigurationError(
                f"Enrichment hook {spec!r} not found: {module_name!r} has no {attr!r}"
            ) from exc

    if not callable(obj):
        raise ConfigurationError(f"Enrichment hook {spec!r} is not callable")
    return obj


def run_enrichment_hook(hook: EnrichmentHook, document: BeautifulSoup) -> dict[str, Any]:
    """Call the hook and return its fields as a plain dict.

    Any failure inside the hook surfaces as `EnrichmentHookError`.
    """

    try:
        output = hook(document)
    except Exception as exc:
        raise EnrichmentHookError(f"{exc.__class__.__name__}: {exc}") from exc

    if output is None:
        return {}
    if not isinstance(output, Mapping):
        raise EnrichmentHookError(
            f"Enrichment hook must return a mapping, got {type(output).__name__}"
        )
    return {str(key): value for key, value in output.items()}


__all__ = [
    "EnrichmentHook",
    "load_enrichment_hook",
    "run_enrichment_hook",
]
