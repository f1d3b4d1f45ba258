import pytest

from pg_padring_gen.config import PadConfig
from pg_padring_gen.errors import ConfigurationError, ConnectivityError, CountMismatchError, DiscoveryError
from pg_padring_gen.geometry import Abutment, PadCategory, Rect, RingElement, Side
from pg_padring_gen.inventory import InstanceRecord, PinRef
from pg_padring_gen.pad_placer import (
    check_ring_closed,
    classify_pad,
    connect_by_abutment,
    discover_pads,
    pad_location,
    place_pads,
)

DIE = Rect(0, 0, 800, 800)
RING_NETS = ("VDD", "VSS", "IOVDD", "IOVSS")


@pytest.fixture
def params() -> PadConfig:
    return PadConfig()


def test_classify_pad():
    assert classify_pad("u_pad_vdd") == PadCategory.POWER
    assert classify_pad("u_pad_IOVSS_2") == PadCategory.POWER
    assert classify_pad("u_pad_clk") == PadCategory.SIGNAL


def test_discovery_puts_power_first(inventory, params):
    sequence = discover_pads(inventory.instances, params)
    names = [c.name for c in sequence]
    assert names[:4] == ["u_pad_iovdd", "u_pad_iovss", "u_pad_vdd", "u_pad_vss"]
    assert names[4:] == sorted(names[4:])
    assert len(names) == 12
    assert all(c.category == PadCategory.SIGNAL for c in sequence[4:])


def test_discovery_needs_both_patterns(params):
    records = [
        InstanceRecord(name="u_pad_clk", master="other_IOPad"),
        InstanceRecord(name="pad_clk", master="sg13g2_IOPadIn"),
    ]
    with pytest.raises(DiscoveryError, match="No I/O pads"):
        discover_pads(records, params)


@pytest.mark.parametrize(
    "index, expected",
    [(0, 273.333333), (1, 360.0), (2, 446.666667)],
)
def test_pad_location(params, index, expected):
    assert pad_location(index, 3, 800.0, params) == pytest.approx(expected)


def test_pad_location_rejects_crowded_side(params):
    with pytest.raises(ConfigurationError, match="do not fit"):
        pad_location(0, 4, 800.0, params)


def test_placement_order(inventory, db, params):
    ring = place_pads(db, inventory.pads, DIE, params)
    by_side = {side: [p.name for p in ring.pads if p.side == side] for side in Side}
    assert by_side[Side.SOUTH] == ["u_pad_iovdd", "u_pad_iovss", "u_pad_vdd"]
    assert by_side[Side.EAST] == ["u_pad_vss", "u_pad_clk", "u_pad_req_msg"]
    assert by_side[Side.NORTH] == ["u_pad_req_rdy", "u_pad_req_val", "u_pad_reset"]
    assert by_side[Side.WEST] == ["u_pad_resp_msg", "u_pad_resp_rdy", "u_pad_resp_val"]
    assert ring.discovered == len(ring.pads) == 12


def test_pad_geometry(inventory, db, params):
    ring = place_pads(db, inventory.pads, DIE, params)
    pads = {p.name: p for p in ring.pads}
    assert pads["u_pad_iovdd"].rect == Rect(273, 90, 353, 270)
    assert pads["u_pad_iovss"].rect == Rect(360, 90, 440, 270)
    assert pads["u_pad_vdd"].rect == Rect(446, 90, 526, 270)
    assert pads["u_pad_clk"].rect == Rect(530, 360, 710, 440)
    assert pads["u_pad_req_val"].rect == Rect(360, 530, 440, 710)
    assert pads["u_pad_resp_rdy"].rect == Rect(90, 360, 270, 440)
    assert pads["u_pad_vdd"].coordinate == pytest.approx(446.666667)

    for side in Side:
        side_pads = [p for p in ring.pads if p.side == side]
        for a, b in zip(side_pads, side_pads[1:]):
            assert a.coordinate < b.coordinate
            assert not a.rect.overlaps(b.rect)


def test_fillers_close_every_row(inventory, db, params):
    ring = place_pads(db, inventory.pads, DIE, params)
    fillers = ring.elements_of("filler")
    assert len(fillers) == 32
    for side in Side:
        row_elements = [e for e in ring.elements if e.side == side and e.kind in ("pad", "filler")]
        axis = (lambda r: (r.x_min, r.x_max)) if side.horizontal else (lambda r: (r.y_min, r.y_max))
        spans = sorted(axis(e.rect) for e in row_elements)
        assert spans[0][0] == pytest.approx(270.0)
        assert spans[-1][1] == pytest.approx(530.0)
        for (_, end), (start, _) in zip(spans, spans[1:]):
            assert start == pytest.approx(end)

    south = sorted(
        (e for e in fillers if e.side == Side.SOUTH), key=lambda e: e.rect.x_min
    )
    assert [e.master for e in south[:2]] == ["sg13g2_Filler2000", "sg13g2_Filler1000"]


def test_corners_and_bondpads(inventory, db, params):
    ring = place_pads(db, inventory.pads, DIE, params)
    corners = {e.name: e.rect for e in ring.elements_of("corner")}
    assert corners["IO_CORNER_SOUTH_WEST"] == Rect(90, 90, 270, 270)
    assert corners["IO_CORNER_NORTH_EAST"] == Rect(530, 530, 710, 710)
    assert len(corners) == 4

    bondpads = {e.name: e for e in ring.elements_of("bondpad")}
    assert len(bondpads) == 12
    assert bondpads["u_pad_iovdd_bondpad"].rect == Rect(278, 20, 348, 90)
    assert bondpads["u_pad_req_val_bondpad"].rect == Rect(365, 710, 435, 780)
    assert bondpads["u_pad_clk_bondpad"].rect == Rect(710, 365, 780, 435)
    assert bondpads["u_pad_resp_rdy_bondpad"].rect == Rect(20, 365, 90, 435)
    assert all(b.master == "bondpad_70x70" for b in bondpads.values())


def test_bond_nets_follow_pad_pin(inventory, db, params):
    db.pin_nets = {PinRef("u_pad_clk", "pad"): "clk_PAD", PinRef("u_pad_vdd", "pad"): "VDD"}
    ring = place_pads(db, inventory.pads, DIE, params, ring_nets=RING_NETS)
    bondpads = {e.name: e for e in ring.elements_of("bondpad")}
    assert bondpads["u_pad_clk_bondpad"].nets == ("clk_PAD",)
    assert bondpads["u_pad_reset_bondpad"].nets == ()
    assert Abutment("u_pad_clk", "u_pad_clk_bondpad", "clk_PAD") in ring.abutments
    assert Abutment("u_pad_vdd", "u_pad_vdd_bondpad", "VDD") in ring.abutments


def test_ring_is_closed_and_rows_released(inventory, db, params):
    ring = place_pads(db, inventory.pads, DIE, params, ring_nets=RING_NETS)
    ring_elements = [e for e in ring.elements if e.kind != "bondpad"]
    vdd_links = [a for a in ring.abutments if a.net == "VDD"]
    # A closed loop has as many links as elements.
    assert len(vdd_links) >= len(ring_elements)
    assert db.io_rows == []
    assert db.pad_ring is ring


def test_broken_ring_is_reported():
    a = RingElement("a", "m", "pad", Side.SOUTH, Rect(0, 0, 10, 10), ("VDD",))
    b = RingElement("b", "m", "filler", Side.SOUTH, Rect(10, 0, 20, 10), ("VDD",))
    c = RingElement("c", "m", "filler", Side.SOUTH, Rect(25, 0, 30, 10), ("VDD",))
    elements = [a, b, c]
    abutments = connect_by_abutment(elements)
    assert abutments == [Abutment("a", "b", "VDD")]
    with pytest.raises(ConnectivityError, match="VDD is broken into 2 segments"):
        check_ring_closed(elements, abutments, ("VDD",))


def test_too_many_pads_for_the_slots(inventory, db, params, make_pads):
    pads = inventory.pads + make_pads(["u_pad_spare"])
    with pytest.raises(CountMismatchError) as excinfo:
        place_pads(db, pads, DIE, params)
    err = excinfo.value
    assert (err.expected, err.placed) == (13, 12)
    assert err.unplaced == ["u_pad_spare"]
    assert "expected 13, placed 12" in str(err)
    assert db.pad_ring is None
    assert db.io_rows == []


def test_crowded_side_fails_before_rows_exist(inventory, db, params):
    crowded = params.model_copy(update={"pads_per_side": {Side.SOUTH: 13}})
    with pytest.raises(ConfigurationError, match="south"):
        place_pads(db, inventory.pads, DIE, crowded)
    assert db.io_rows == []


def test_empty_sides_are_filled(db, params, make_pads):
    one_side = params.model_copy(
        update={"pads_per_side": {Side.SOUTH: 2, Side.EAST: 0, Side.NORTH: 0, Side.WEST: 0}}
    )
    ring = place_pads(db, make_pads(["u_pad_a", "u_pad_b"]), DIE, one_side, ring_nets=("VDD",))
    assert len(ring.pads) == 2
    north = [e for e in ring.elements_of("filler") if e.side == Side.NORTH]
    assert sum(e.rect.width for e in north) == pytest.approx(260.0)


def test_power_pads_take_the_first_slots(db, params, make_pads):
    pads = make_pads(["u_pad_sig_a", "u_pad_vdd_1"]) + make_pads(["u_pad_vss_1"], "sg13g2_IOPadVss")
    ring = place_pads(db, pads, DIE, params)
    assert [p.name for p in ring.pads] == ["u_pad_vdd_1", "u_pad_vss_1", "u_pad_sig_a"]
    assert [p.index for p in ring.pads] == [0, 1, 2]
    assert all(p.side == Side.SOUTH for p in ring.pads)
