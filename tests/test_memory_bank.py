from datetime import datetime

import pytest

from mindbot.agent.memory_bank import MemoryBank


@pytest.fixture
def bank(tmp_path):
    bank = MemoryBank("andy", f"sqlite:///{tmp_path / 'bank.sqlite'}")
    yield bank
    bank.close()


def test_remember_and_recall(bank):
    bank.remember_place("home", 1, 64, 2)
    assert bank.recall_place("home") == (1.0, 64.0, 2.0)
    assert bank.recall_place("nowhere") is None


def test_remember_overwrites(bank):
    bank.remember_place("home", 1, 64, 2)
    bank.remember_place("home", 5, 70, 5)
    assert bank.recall_place("home") == (5.0, 70.0, 5.0)
    assert bank.get_keys() == ["home"]


def test_places_are_per_agent(tmp_path, bank):
    other = MemoryBank("jill", f"sqlite:///{tmp_path / 'bank.sqlite'}")
    try:
        bank.remember_place("home", 1, 64, 2)
        other.remember_place("mine", 0, 12, 0)
        assert bank.get_keys() == ["home"]
        assert other.get_keys() == ["mine"]
    finally:
        other.close()


def test_timestamps_are_utc_aware(bank):
    created = bank.remember_place("home", 1, 64, 2)
    updated = bank.remember_place("home", 5, 70, 5)
    assert datetime.fromisoformat(created.updated_at).tzinfo is not None
    assert datetime.fromisoformat(updated.updated_at).utcoffset().total_seconds() == 0
