"""
Registry of provider adapters and provider-order resolution.

The registry owns one adapter per provider id, in fixed fallback priority,
and decides which providers a given orchestration may try. Usability is
re-checked against the settings store every time an order is resolved.
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from .config import ConfigStore, ProviderConfig, fallback_enabled, load_provider_config, selected_provider
from .exceptions import NoProviderConfiguredError
from .providers import ProviderAdapter, default_adapters

logger = logging.getLogger(__name__)

ProviderOrder = Tuple[str, ...]


class ProviderRegistry:
    """Holds configured adapters and resolves the primary + fallback order."""

    def __init__(self, adapters: Optional[Iterable[ProviderAdapter]] = None):
        """
        Args:
            adapters: Adapters in fallback priority order (built-in set if None)
        """
        self._adapters: Dict[str, ProviderAdapter] = {}
        for adapter in (default_adapters() if adapters is None else adapters):
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        """Add an adapter; a new id goes last in priority, a known id is replaced in place."""
        if not adapter.provider_id:
            raise ValueError(f"{type(adapter).__name__} has no provider_id")
        self._adapters[adapter.provider_id] = adapter

    def get(self, provider_id: str) -> ProviderAdapter:
        try:
            return self._adapters[provider_id]
        except KeyError:
            raise NoProviderConfiguredError(f"Unknown provider '{provider_id}'") from None

    @property
    def provider_ids(self) -> ProviderOrder:
        return tuple(self._adapters)

    def config_for(self, settings: ConfigStore, provider_id: str) -> ProviderConfig:
        return load_provider_config(settings, provider_id)

    def is_usable(self, settings: ConfigStore, provider_id: str) -> bool:
        adapter = self.get(provider_id)
        return adapter.is_usable(self.config_for(settings, provider_id))

    def resolve_order(self, settings: ConfigStore) -> ProviderOrder:
        """
        Build the provider order for one orchestration.

        The selected provider comes first when usable. With fallback enabled
        the remaining usable providers follow in priority order; with it
        disabled the order is exactly the selected provider.

        Raises:
            NoProviderConfiguredError: If the resulting order would be empty
        """
        primary = selected_provider(settings)
        if primary is None:
            raise NoProviderConfiguredError("No provider selected in settings.")
        if primary not in self._adapters:
            raise NoProviderConfiguredError(
                f"Selected provider '{primary}' is not one of: {', '.join(self._adapters)}."
            )

        use_fallback = fallback_enabled(settings)
        primary_usable = self.is_usable(settings, primary)

        if not use_fallback:
            if not primary_usable:
                adapter = self.get(primary)
                config = self.config_for(settings, primary)
                missing = adapter.missing_fields(config)
                invalid = adapter.invalid_fields(config)
                problem = f"is missing {', '.join(missing)}" if missing else f"has unusable {', '.join(invalid)}"
                raise NoProviderConfiguredError(
                    f"Provider '{primary}' {problem} and fallback is disabled."
                )
            return (primary,)

        order: List[str] = [primary] if primary_usable else []
        for provider_id in self._adapters:
            if provider_id not in order and self.is_usable(settings, provider_id):
                order.append(provider_id)

        if not order:
            raise NoProviderConfiguredError("Fallback is enabled but no provider has complete settings.")

        if not primary_usable:
            logger.info(f"Selected provider '{primary}' is not usable; falling back to {order[0]}")
        return tuple(order)

    def describe(self, settings: ConfigStore) -> List[Dict[str, Any]]:
        """Usability and missing settings for every registered provider."""
        rows = []
        for provider_id, adapter in self._adapters.items():
            config = self.config_for(settings, provider_id)
            missing = adapter.missing_fields(config)
            invalid = adapter.invalid_fields(config)
            rows.append({
                "provider": provider_id,
                "name": adapter.display_name,
                "usable": not missing and not invalid,
                "missing": missing,
                "invalid": invalid,
                "timeout": adapter.timeout_for(config),
            })
        return rows
