"""Tests for the selection manager and its persistence."""

import json

import pytest

from tickerbar.market.errors import SelectionLimitExceeded
from tickerbar.market.models import ProviderGroup
from tickerbar.market.selection import (
    MemorySelectionStore,
    SelectionManager,
    SelectionStore,
)


class TestSelectionStore:
    def test_roundtrip(self, tmp_path):
        store = SelectionStore(tmp_path / "nested" / "selection.json")
        store.save(["CB:BTC-USD", "HLP:SOL"])
        assert store.load() == ["CB:BTC-USD", "HLP:SOL"]
        assert json.loads(store.path.read_text()) == ["CB:BTC-USD", "HLP:SOL"]

    def test_missing_file(self, tmp_path):
        assert SelectionStore(tmp_path / "none.json").load() == []

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "selection.json"
        path.write_text("{not json")
        assert SelectionStore(path).load() == []

    def test_non_list_file(self, tmp_path):
        path = tmp_path / "selection.json"
        path.write_text('{"ids": []}')
        assert SelectionStore(path).load() == []


class TestSelectionManager:
    """Unit tests for SelectionManager."""

    def test_default_when_nothing_saved(self):
        manager = SelectionManager(MemorySelectionStore())
        assert manager.ids == ("CB:BTC-USD",)

    def test_saved_selection_truncated_to_limit(self):
        store = MemorySelectionStore(["CB:BTC-USD", "HLP:BTC", "HLP:SOL", "TV:NASDAQ:AAPL"])
        manager = SelectionManager(store)
        assert manager.ids == ("CB:BTC-USD", "HLP:BTC", "HLP:SOL")

    def test_toggle_adds_and_persists(self):
        store = MemorySelectionStore(["CB:BTC-USD"])
        manager = SelectionManager(store)
        change = manager.toggle("HLP:SOL")
        assert change.accepted
        assert change.added == "HLP:SOL"
        assert store.saved == ["CB:BTC-USD", "HLP:SOL"]

    def test_toggle_removes(self):
        store = MemorySelectionStore(["CB:BTC-USD", "HLP:SOL"])
        manager = SelectionManager(store)
        change = manager.toggle("CB:BTC-USD")
        assert change.removed == "CB:BTC-USD"
        assert manager.ids == ("HLP:SOL",)
        assert store.saved == ["HLP:SOL"]

    def test_last_entry_cannot_be_removed(self):
        store = MemorySelectionStore(["CB:BTC-USD"])
        manager = SelectionManager(store)
        change = manager.toggle("CB:BTC-USD")
        assert not change.accepted
        assert manager.ids == ("CB:BTC-USD",)

    def test_fourth_add_rejected(self):
        manager = SelectionManager(MemorySelectionStore(["CB:BTC-USD", "HLP:BTC", "HLP:SOL"]))
        with pytest.raises(SelectionLimitExceeded, match="up to 3"):
            manager.toggle("TV:NASDAQ:AAPL")
        assert len(manager) == 3

    def test_groups(self):
        manager = SelectionManager(MemorySelectionStore(["HLP:BTC", "HLS:@107", "TV:NASDAQ:AAPL"]))
        assert manager.groups() == {ProviderGroup.HYPERLIQUID, ProviderGroup.EQUITIES_SCANNER}
        assert manager.ids_for(ProviderGroup.HYPERLIQUID) == ["HLP:BTC", "HLS:@107"]

    def test_validate_drops_unknown(self):
        store = MemorySelectionStore(["CB:BTC-USD", "CB:GONE-USD"])
        manager = SelectionManager(store)
        assert manager.validate(lambda i: i == "CB:BTC-USD")
        assert manager.ids == ("CB:BTC-USD",)
        assert store.saved == ["CB:BTC-USD"]

    def test_validate_falls_back(self):
        manager = SelectionManager(MemorySelectionStore(["CB:GONE-USD"]))
        assert manager.validate(lambda i: i == "HLP:BTC")
        assert manager.ids == ("HLP:BTC",)

    def test_validate_keeps_previous_when_nothing_resolves(self):
        manager = SelectionManager(MemorySelectionStore(["CB:GONE-USD"]))
        assert not manager.validate(lambda i: False)
        assert manager.ids == ("CB:GONE-USD",)

    def test_validate_unchanged(self):
        store = MemorySelectionStore(["CB:BTC-USD"])
        manager = SelectionManager(store)
        store.saved = []
        assert not manager.validate(lambda i: True)
        assert store.saved == []  # nothing to persist
