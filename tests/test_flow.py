import pytest
import yaml
from click.testing import CliRunner

from pg_padring_gen.cli import app
from pg_padring_gen.config import ENV_OVERRIDES, Config, load_config
from pg_padring_gen.errors import ConfigurationError, ConflictError
from pg_padring_gen.flow import run_flow
from pg_padring_gen.geometry import SignalClass
from pg_padring_gen.inventory import PinRef
from pg_padring_gen.layout_writer import layout_to_dict, write_layout
from pg_padring_gen.reporter import generate_report


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)


def test_full_flow(config, inventory):
    db = run_flow(config, inventory)

    assert db.created_nets[:4] == ["VDD", "VSS", "IOVDD", "IOVSS"]
    assert {n.name for n in db.nets_of_class(SignalClass.GROUND)} == {"VSS", "IOVSS"}
    assert db.find_net("clk_PAD").signal_class == SignalClass.SIGNAL

    assert len(db.grid.shapes_of("rail")) == 69
    assert set(db.pin_nets) == set(inventory.pin_refs())
    assert db.pin_nets[PinRef("_103_", "VDD")] == "VDD"

    ring = db.pad_ring
    assert len(ring.pads) == 12
    assert len(ring.elements_of("filler")) == 32
    bond = {e.name: e.nets for e in ring.elements_of("bondpad")}
    assert bond["u_pad_iovss_bondpad"] == ("IOVSS",)
    assert bond["u_pad_resp_msg_bondpad"] == ("resp_msg_PAD",)


def test_runs_are_independent(config, inventory):
    first = run_flow(config, inventory)
    second = run_flow(config, inventory)
    assert first is not second
    assert first.pin_nets == second.pin_nets
    assert second.created_nets == first.created_nets


def test_conflicting_custom_rules(config, inventory):
    raw = config.model_dump()
    raw["connections"] = [
        {"net": "VDD", "pin_pattern": "^VDD$", "polarity": "power"},
        {"net": "VSS", "pin_pattern": ".*DD", "polarity": "ground"},
    ]
    custom = Config.model_validate(raw)
    with pytest.raises(ConflictError, match="_101_/VDD"):
        run_flow(custom, inventory)


def test_report(config, inventory):
    db = run_flow(config, inventory)
    report = generate_report(db, config)
    assert "** Pad Ring **" in report
    assert "Pads Found: 12 (Power: 4, Signal: 8)" in report
    assert "Pads Placed: 12" in report
    assert "South: 3 u_pad_iovdd u_pad_iovss u_pad_vdd" in report
    assert "Metal1 <-> Metal4: 241 vias" in report
    assert "Fillers: 32" in report
    assert "IOVSS: GROUND special (created)" in report


def test_layout_round_trip(config, inventory, tmp_path):
    db = run_flow(config, inventory)
    path = tmp_path / "layout.yaml"
    write_layout(db, path)
    loaded = yaml.safe_load(path.read_text())
    assert loaded == layout_to_dict(db)
    assert loaded["design"] == "gcd_with_io"
    assert len(loaded["pads"]) == 12
    assert loaded["grid"]["rail_request"] == {"layer": "Metal1", "width": 0.28, "follow_pins": True}
    south_west = next(c for c in loaded["corners"] if c["name"] == "IO_CORNER_SOUTH_WEST")
    assert south_west["rect"] == [90.0, 90.0, 270.0, 270.0]


def test_cli_writes_outputs(design_dir, tmp_path, clean_env):
    out = tmp_path / "out"
    result = CliRunner().invoke(
        app,
        [
            str(design_dir / "inventory.yaml"),
            "--config",
            str(design_dir / "config.yaml"),
            "--output-dir",
            str(out),
            "--no-viz",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Done!" in result.output
    assert (out / "padring_summary.txt").exists()
    assert (out / "gcd_with_io_layout.yaml").exists()
    assert not (out / "floorplan.html").exists()


def test_cli_renders_floorplan(design_dir, tmp_path, clean_env):
    out = tmp_path / "out"
    result = CliRunner().invoke(
        app,
        [
            str(design_dir / "inventory.yaml"),
            "--config",
            str(design_dir / "config.yaml"),
            "--output-dir",
            str(out),
            "--no-report",
            "--no-layout",
        ],
    )
    assert result.exit_code == 0, result.output
    html = (out / "floorplan.html").read_text()
    assert "Floorplan - gcd_with_io" in html


def test_cli_reports_failure(design_dir, tmp_path, clean_env):
    inventory = yaml.safe_load((design_dir / "inventory.yaml").read_text())
    inventory["pads"].append({"name": "u_pad_spare", "master": "sg13g2_IOPadIn", "pins": ["pad"]})
    path = tmp_path / "inventory.yaml"
    path.write_text(yaml.safe_dump(inventory))

    result = CliRunner().invoke(
        app, [str(path), "--config", str(design_dir / "config.yaml"), "--output-dir", str(tmp_path / "out")]
    )
    assert result.exit_code == 1
    assert "expected 13, placed 12" in result.output
    assert not (tmp_path / "out").exists()


def test_core_defaulting_to_die_leaves_no_room_for_ring(inventory):
    config = load_config(environ={})
    assert config.core_area is None
    with pytest.raises(ConfigurationError, match="does not fit inside die area"):
        run_flow(config, inventory)
