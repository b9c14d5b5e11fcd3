"""Unit tests for the preference store."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from wallet_hub.errors import UnsupportedNetworkError
from wallet_hub.preferences import PREFERRED_NETWORK_KEY, PreferenceStore


@pytest.fixture()
def store(tmp_path: Path) -> PreferenceStore:
    return PreferenceStore(tmp_path / "prefs" / "preferences.json")


class TestPreferredNetwork:
    def test_none_by_default(self, store: PreferenceStore) -> None:
        assert store.get_preferred_network() is None

    def test_set_and_get(self, store: PreferenceStore) -> None:
        store.set_preferred_network(137)
        assert store.get_preferred_network() == 137
        assert json.loads(store.path.read_text()) == {PREFERRED_NETWORK_KEY: 137}

    def test_unknown_chain_rejected(self, store: PreferenceStore) -> None:
        with pytest.raises(UnsupportedNetworkError):
            store.set_preferred_network(999)
        assert not store.path.exists()

    def test_clear(self, store: PreferenceStore) -> None:
        store.set_preferred_network(56)
        store.clear_preferred_network()
        assert store.get_preferred_network() is None

    def test_clear_when_unset_is_noop(self, store: PreferenceStore) -> None:
        store.clear_preferred_network()
        assert not store.path.exists()

    def test_other_keys_preserved(self, store: PreferenceStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"theme": "dark"}))
        store.set_preferred_network(10)
        store.clear_preferred_network()
        assert json.loads(store.path.read_text()) == {"theme": "dark"}

    def test_corrupt_file_treated_as_empty(self, store: PreferenceStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.get_preferred_network() is None

    def test_non_numeric_value_ignored(self, store: PreferenceStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({PREFERRED_NETWORK_KEY: "polygon"}))
        assert store.get_preferred_network() is None
