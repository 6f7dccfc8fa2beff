"""
Adapter protocol + registry for pluggable feed sources.
"""
from __future__ import annotations

from typing import Dict, Iterable, Protocol

from feedcast.errors import FeedConfigError
from feedcast.models import ChangeDetectionState, FeedDescriptor, FeedType, FetchOutcome


class SourceAdapter(Protocol):
    feed_type: FeedType

    def fetch(self, descriptor: FeedDescriptor, state: ChangeDetectionState) -> FetchOutcome:
        ...


class AdapterRegistry:
    """
    Maps each feed type to the adapter instance that fetches it.
    """

    def __init__(self) -> None:
        self._adapters: Dict[FeedType, SourceAdapter] = {}

    def register(self, adapter: SourceAdapter) -> None:
        if adapter.feed_type in self._adapters:
            raise ValueError(f"Adapter for '{adapter.feed_type.value}' already registered")
        self._adapters[adapter.feed_type] = adapter

    def for_type(self, feed_type: FeedType) -> SourceAdapter:
        adapter = self._adapters.get(feed_type)
        if adapter is None:
            raise FeedConfigError(f"Unknown feed type: {feed_type}")
        return adapter

    def types(self) -> Iterable[FeedType]:
        return self._adapters.keys()
