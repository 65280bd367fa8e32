from __future__ import annotations

from typing import Dict, Tuple

from ..errors import UnknownLanguageError
from ..settings import Settings
from .base import LanguageAdapter
from .kotlin import KotlinAdapter
from .node import NodeAdapter


class AdapterRegistry:
    """Closed set of runtimes, selected by explicit language id."""

    def __init__(self, adapters: Tuple[LanguageAdapter, ...]):
        self._by_id: Dict[str, LanguageAdapter] = {}
        for adapter in adapters:
            for language_id in adapter.language_ids:
                if language_id in self._by_id:
                    raise ValueError(f"language {language_id!r} registered twice")
                self._by_id[language_id] = adapter

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdapterRegistry":
        memory = settings.run_limits().memory_bytes
        return cls((
            NodeAdapter(
                settings.node_bin,
                settings.jsx_transpiler,
                memory,
                node_modules=settings.node_modules,
                capture_bytes=settings.max_output_bytes,
            ),
            KotlinAdapter(settings.kotlinc_bin, settings.java_bin, memory),
        ))

    def get(self, language_id: str) -> LanguageAdapter:
        try:
            return self._by_id[language_id]
        except KeyError:
            raise UnknownLanguageError(language_id) from None

    def language_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(self._by_id))
