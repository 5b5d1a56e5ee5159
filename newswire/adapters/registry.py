"""Explicit mapping from source identifier to adapter factory."""

from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Mapping, Optional

from newswire.settings import Settings

from .base import SourceAdapter
from .html import HtmlSelectorAdapter

AdapterFactory = Callable[[], SourceAdapter]


class AdapterRegistry:
    """Source identifier -> adapter factory; a fresh adapter per run."""

    def __init__(self, factories: Optional[Mapping[str, AdapterFactory]] = None) -> None:
        self._factories: Dict[str, AdapterFactory] = {}
        for source, factory in (factories or {}).items():
            self.register(source, factory)

    def register(self, source: str, factory: AdapterFactory) -> None:
        key = source.strip().lower()
        if not key:
            raise ValueError("source must not be blank")
        if key in self._factories:
            raise ValueError(f"source already registered: {key}")
        self._factories[key] = factory

    def create(self, source: str) -> SourceAdapter:
        key = source.strip().lower()
        try:
            factory = self._factories[key]
        except KeyError:
            available = ", ".join(self._factories) or "<none>"
            raise KeyError(f"unknown source: {source}. available: {available}") from None
        return factory()

    def create_all(self) -> List[SourceAdapter]:
        return [factory() for factory in self._factories.values()]

    def sources(self) -> List[str]:
        return list(self._factories)

    def __contains__(self, source: object) -> bool:
        return isinstance(source, str) and source.strip().lower() in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(self._factories)

    def __len__(self) -> int:
        return len(self._factories)


def build_registry(settings: Settings) -> AdapterRegistry:
    """Registry with one ``HtmlSelectorAdapter`` per configured source."""
    registry = AdapterRegistry()
    for config in settings.sources:

        def _factory(cfg=config) -> SourceAdapter:  # bind loop variable
            return HtmlSelectorAdapter(
                cfg,
                timeout=float(settings.http_timeout_seconds),
                user_agent=settings.http_user_agent,
                max_attempts=int(settings.http_max_attempts),
            )

        registry.register(config.source, _factory)
    return registry
