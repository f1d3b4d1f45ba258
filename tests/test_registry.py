import logging

import pytest

from pg_padring_gen.errors import ConfigurationError
from pg_padring_gen.geometry import SignalClass
from pg_padring_gen.registry import DesignDatabase


def test_ensure_net_creates_special_supply_net(db, caplog):
    with caplog.at_level(logging.INFO):
        net = db.ensure_net("VDD", SignalClass.POWER)
    assert net.signal_class == SignalClass.POWER
    assert net.special
    assert db.created_nets == ["VDD"]
    assert "Created net VDD (POWER)" in caplog.text


def test_ensure_net_is_idempotent(db):
    first = db.ensure_net("VSS", SignalClass.GROUND)
    second = db.ensure_net("VSS", "GROUND")
    assert first is second
    assert db.created_nets == ["VSS"]


def test_ensure_net_class_conflict(db):
    db.ensure_net("IOVDD", SignalClass.POWER)
    with pytest.raises(ConfigurationError, match="IOVDD"):
        db.ensure_net("IOVDD", SignalClass.GROUND)


def test_signal_nets_are_not_special(db):
    assert not db.ensure_net("clk", SignalClass.SIGNAL).special
    assert db.find_net("missing") is None


def test_databases_are_independent():
    a = DesignDatabase()
    b = DesignDatabase()
    a.ensure_net("VDD", SignalClass.POWER)
    assert b.find_net("VDD") is None
