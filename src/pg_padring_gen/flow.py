"""Single-pass synthesis pipeline: nets, power grid, global connect, pad ring."""

from __future__ import annotations

import logging

from pg_padring_gen.config import Config
from pg_padring_gen.connect import apply_connections, rules_from_config
from pg_padring_gen.geometry import SignalClass
from pg_padring_gen.grid_builder import GridSpec, build_grid
from pg_padring_gen.inventory import Inventory
from pg_padring_gen.pad_placer import place_pads
from pg_padring_gen.registry import DesignDatabase

logger = logging.getLogger(__name__)


def supply_nets(config: Config) -> list[tuple[str, SignalClass]]:
    pdn = config.pdn
    return [
        (pdn.power_net, SignalClass.POWER),
        (pdn.ground_net, SignalClass.GROUND),
        (pdn.io_power_net, SignalClass.POWER),
        (pdn.io_ground_net, SignalClass.GROUND),
    ]


def run_flow(config: Config, inventory: Inventory) -> DesignDatabase:
    """Run every stage on a fresh design database and return it.

    Any failure aborts the run; there is no partial result.
    """
    db = DesignDatabase(design_name=config.design_name)
    die = config.die_rect
    core = config.core_rect()

    logger.info("=== Starting PDN Generation for %s ===", config.design_name)
    for name, signal_class in supply_nets(config):
        db.ensure_net(name, signal_class)

    spec = GridSpec.from_config(config.pdn)
    db.grid = build_grid(core, spec, rows=inventory.rows, die=die)

    logger.info("Setting up global connections...")
    apply_connections(db, inventory.pin_refs(), rules_from_config(config), inventory.declared_nets())
    logger.info("=== PDN generation completed successfully ===")

    logger.info("pad - I/O pad placement for %s", config.design_name)
    place_pads(db, inventory.pads, die, config.pads, ring_nets=[name for name, _ in supply_nets(config)])
    logger.info("pad placement finished for %s", config.design_name)
    return db
