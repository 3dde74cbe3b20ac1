"""The user's watch-list: a small, ordered, persisted set of instrument ids."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import SelectionLimitExceeded
from .models import Provider, ProviderGroup

logger = logging.getLogger(__name__)

MAX_SELECTION = 3
DEFAULT_SELECTION: tuple[str, ...] = ("CB:BTC-USD",)
# Tried in order when validation leaves the selection empty
FALLBACK_IDS: tuple[str, ...] = ("CB:BTC-USD", "HLP:BTC")


class SelectionStore:
    """Persists the selection as a flat JSON list of id strings."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> list[str]:
        """Read the saved list. Missing or unreadable files give []."""
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable selection file %s: %s", self.path, e)
            return []
        if not isinstance(raw, list):
            logger.warning("Ignoring selection file %s: expected a list", self.path)
            return []
        return [item for item in raw if isinstance(item, str)]

    def save(self, ids: Sequence[str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(list(ids)), encoding="utf-8")
        except OSError as e:
            logger.error("Failed to save selection to %s: %s", self.path, e)


class MemorySelectionStore:
    """Keeps the selection in memory only."""

    def __init__(self, ids: Sequence[str] = ()) -> None:
        self.saved: list[str] = list(ids)

    def load(self) -> list[str]:
        return list(self.saved)

    def save(self, ids: Sequence[str]) -> None:
        self.saved = list(ids)


@dataclass(frozen=True, slots=True)
class SelectionChange:
    """Outcome of a toggle. ``accepted`` is False when the toggle was refused."""

    accepted: bool
    selection: tuple[str, ...]
    added: str | None = None
    removed: str | None = None


class SelectionManager:
    """Owns the ordered watch-list, bounded to 1..MAX_SELECTION ids."""

    def __init__(
        self,
        store: SelectionStore | MemorySelectionStore,
        limit: int = MAX_SELECTION,
    ) -> None:
        self._store = store
        self._limit = limit
        saved = store.load()
        if saved:
            self._ids: list[str] = saved[:limit]
            logger.info("Loaded %d saved selections: %s", len(self._ids), ", ".join(self._ids))
        else:
            self._ids = list(DEFAULT_SELECTION)
            logger.info("No saved selections, using default: %s", ", ".join(self._ids))

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._ids)

    @property
    def limit(self) -> int:
        return self._limit

    def groups(self) -> set[ProviderGroup]:
        """Provider-groups with at least one selected id."""
        groups = set()
        for instrument_id in self._ids:
            provider = Provider.from_instrument_id(instrument_id)
            if provider is not None:
                groups.add(ProviderGroup.of(provider))
        return groups

    def ids_for(self, group: ProviderGroup) -> list[str]:
        return [i for i in self._ids if Provider.from_instrument_id(i) in group.providers]

    def toggle(self, instrument_id: str) -> SelectionChange:
        """Remove the id if selected, otherwise add it.

        Removing the only entry is refused. Adding beyond the limit raises
        SelectionLimitExceeded. Every accepted change is saved immediately.
        """
        if instrument_id in self._ids:
            if len(self._ids) <= 1:
                return SelectionChange(accepted=False, selection=self.ids)
            self._ids.remove(instrument_id)
            self._persist()
            return SelectionChange(accepted=True, selection=self.ids, removed=instrument_id)

        if len(self._ids) >= self._limit:
            raise SelectionLimitExceeded(self._limit)
        self._ids.append(instrument_id)
        self._persist()
        return SelectionChange(accepted=True, selection=self.ids, added=instrument_id)

    def validate(self, resolves: Callable[[str], bool]) -> bool:
        """Drop ids no catalog knows. Returns True if the selection changed.

        An emptied selection falls back to the first resolvable FALLBACK_IDS
        entry. If none resolves either, the previous selection is kept so the
        watch-list never becomes empty.
        """
        kept = [i for i in self._ids if resolves(i)]
        if len(kept) != len(self._ids):
            logger.warning("Removed %d invalid selections", len(self._ids) - len(kept))
        if not kept:
            fallback = next((i for i in FALLBACK_IDS if resolves(i)), None)
            if fallback is None:
                logger.warning("No selectable default instrument; keeping %s", ", ".join(self._ids))
                return False
            kept = [fallback]

        if kept == self._ids:
            return False
        self._ids = kept
        self._persist()
        return True

    def _persist(self) -> None:
        self._store.save(self._ids)
        logger.info("Saved selections: %s", ", ".join(self._ids))

    def __contains__(self, instrument_id: object) -> bool:
        return instrument_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)
