from typing import List, NamedTuple, Optional, Sequence

from multikueue.adapter import MultiKueueAdapter
from multikueue.exception import UsageError
from multikueue.resources import GroupVersionKind


class _RegistryEntry(NamedTuple):
    order: int
    name: str
    adapter: MultiKueueAdapter


class AdapterRegistry:
    """Adapters for all supported job kinds, keyed by their integration name (``<group>/<kind in lowercase>``)."""

    _registry: List[_RegistryEntry] = []

    @classmethod
    def register(cls, *, name: str, adapter: MultiKueueAdapter, order: int = 100) -> MultiKueueAdapter:
        for entry in cls._registry:
            if entry.name == name:
                raise UsageError(f'An adapter for integration {name} is already registered.')
        cls._registry.append(_RegistryEntry(order=order, name=name, adapter=adapter))
        return adapter

    @classmethod
    def entries(cls, enabled: Optional[Sequence[str]] = None) -> List[_RegistryEntry]:
        if enabled is not None:
            for name in enabled:
                if name not in (entry.name for entry in cls._registry):
                    raise UsageError(f'Integration {name} is unknown.')
        return [
            entry for entry in sorted(cls._registry, key=lambda entry: (entry.order, entry.name))
            if enabled is None or entry.name in enabled
        ]

    @classmethod
    def adapters(cls, enabled: Optional[Sequence[str]] = None) -> List[MultiKueueAdapter]:
        return [entry.adapter for entry in cls.entries(enabled)]

    @classmethod
    def get_by_name(cls, name: str) -> MultiKueueAdapter:
        for entry in cls._registry:
            if entry.name == name:
                return entry.adapter
        raise UsageError(f'Integration {name} is unknown.')

    @classmethod
    def get_by_kind(cls, kind: str) -> MultiKueueAdapter:
        """Looks an adapter up by kind (case insensitive) or by integration name."""
        matches = [
            entry.adapter for entry in cls.entries()
            if entry.name == kind or entry.adapter.gvk().kind.lower() == kind.lower()
        ]
        if not matches:
            raise UsageError(f'Kind {kind} is not supported.')
        elif len(matches) > 1:
            raise UsageError(f'Kind {kind} is ambiguous, use the integration name instead.')
        return matches[0]

    @classmethod
    def get_by_gvk(cls, gvk: GroupVersionKind) -> MultiKueueAdapter:
        for entry in cls._registry:
            if entry.adapter.gvk() == gvk:
                return entry.adapter
        raise UsageError(f'{gvk} is not supported.')
