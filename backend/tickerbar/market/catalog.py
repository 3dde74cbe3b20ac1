"""Per-provider instrument catalogs and the catalog-readiness gate."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import Instrument, Provider, ProviderGroup


class InstrumentCatalog:
    """The tradable instruments of one provider.

    A catalog is only ever replaced as a whole: instruments missing from a
    newer fetch disappear instead of lingering from the previous one.
    """

    def __init__(self, provider: Provider) -> None:
        self.provider = provider
        self._instruments: dict[str, Instrument] = {}

    def replace(self, instruments: Iterable[Instrument]) -> None:
        fresh: dict[str, Instrument] = {}
        for instrument in instruments:
            if instrument.provider is not self.provider:
                raise ValueError(f"{instrument.id} does not belong to {self.provider.name}")
            fresh[instrument.id] = instrument
        self._instruments = fresh

    def get(self, instrument_id: str) -> Instrument | None:
        return self._instruments.get(instrument_id)

    def sorted_by_name(self) -> list[Instrument]:
        return sorted(self._instruments.values(), key=lambda i: i.display_name.lower())

    def __contains__(self, instrument_id: object) -> bool:
        return instrument_id in self._instruments

    def __len__(self) -> int:
        return len(self._instruments)

    def __iter__(self) -> Iterator[Instrument]:
        return iter(self._instruments.values())


class CatalogSet:
    """All five catalogs, addressable by provider or by instrument id."""

    def __init__(self) -> None:
        self._catalogs = {provider: InstrumentCatalog(provider) for provider in Provider}

    def __getitem__(self, provider: Provider) -> InstrumentCatalog:
        return self._catalogs[provider]

    def resolve(self, instrument_id: str) -> Instrument | None:
        provider = Provider.from_instrument_id(instrument_id)
        if provider is None:
            return None
        return self._catalogs[provider].get(instrument_id)

    def sizes(self) -> dict[str, int]:
        return {provider.value: len(catalog) for provider, catalog in self._catalogs.items()}


class CatalogReadinessGate:
    """Tracks which provider catalogs have finished loading.

    A flag is raised after every load attempt, successful or not, so an
    unreachable provider never blocks the others. ``all_loaded`` is derived
    from the per-provider flags rather than tracked separately.
    """

    def __init__(self) -> None:
        self._loaded: set[Provider] = set()

    def mark_loaded(self, provider: Provider) -> None:
        self._loaded.add(provider)

    def reset(self) -> None:
        self._loaded.clear()

    def is_loaded(self, provider: Provider) -> bool:
        return provider in self._loaded

    @property
    def all_loaded(self) -> bool:
        return all(provider in self._loaded for provider in Provider)

    def group_ready(self, group: ProviderGroup) -> bool:
        """True once every catalog feeding the group's socket is loaded.

        The Hyperliquid socket serves two catalogs; connecting after only one
        of them would race the second load and open the socket twice.
        """
        return all(provider in self._loaded for provider in group.providers)

    def ready_groups(self) -> list[ProviderGroup]:
        return [group for group in ProviderGroup if self.group_ready(group)]

    def snapshot(self) -> dict[str, bool]:
        return {provider.value: provider in self._loaded for provider in Provider}
