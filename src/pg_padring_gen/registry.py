"""Per-run design database and net registry."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from pg_padring_gen.errors import ConfigurationError
from pg_padring_gen.geometry import GridGeometry, IoRow, Net, PadRing, SignalClass
from pg_padring_gen.inventory import PinRef

logger = logging.getLogger(__name__)

SUPPLY_CLASSES = (SignalClass.POWER, SignalClass.GROUND)


@dataclass
class DesignDatabase:
    """Everything a single synthesis run owns.

    Created per run and passed explicitly through the pipeline, so several
    independent runs can live in one process.
    """

    design_name: str = "design"
    nets: dict[str, Net] = field(default_factory=dict)
    pin_nets: dict[PinRef, str] = field(default_factory=dict)
    grid: GridGeometry | None = None
    pad_ring: PadRing | None = None
    io_rows: list[IoRow] = field(default_factory=list)
    created_nets: list[str] = field(default_factory=list)
    rule_matches: list[int] = field(default_factory=list)

    def find_net(self, name: str) -> Net | None:
        return self.nets.get(name)

    def ensure_net(self, name: str, signal_class: SignalClass) -> Net:
        """Return net NAME, creating it with SIGNAL_CLASS if missing.

        Repeat calls with the same class are no-ops. A class mismatch with an
        existing net raises ConfigurationError.
        """
        signal_class = SignalClass(signal_class)
        net = self.nets.get(name)
        if net is not None:
            if net.signal_class != signal_class:
                raise ConfigurationError(
                    f"Net '{name}' already exists as {net.signal_class.value}, "
                    f"cannot re-declare it as {signal_class.value}"
                )
            return net

        net = Net(name=name, signal_class=signal_class, special=signal_class in SUPPLY_CLASSES)
        self.nets[name] = net
        self.created_nets.append(name)
        logger.info("Created net %s (%s)", name, signal_class.value)
        return net

    def nets_of_class(self, signal_class: SignalClass) -> list[Net]:
        return [n for n in self.nets.values() if n.signal_class == signal_class]
