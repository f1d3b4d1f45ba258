"""Exception taxonomy for pad ring and power grid synthesis.

Every error is fatal to the current run. Each one carries enough context
(net, pin, rule, pad names and counts) to diagnose without re-running.
"""

from __future__ import annotations


class PadRingError(Exception):
    """Base class for all synthesis failures."""


class ConfigurationError(PadRingError, ValueError):
    """Missing or contradictory geometric parameters."""


class DiscoveryError(PadRingError):
    """No matching pad or pin instances were found."""


class ConflictError(PadRingError):
    """A pin resolves to two different nets."""


class AmbiguousConnectionError(ConflictError):
    """Two connection rules assign different nets to the same pin."""

    def __init__(
        self,
        instance: str,
        pin: str,
        net_a: str,
        net_b: str,
        rule_a: str,
        rule_b: str,
    ) -> None:
        self.instance = instance
        self.pin = pin
        self.net_a = net_a
        self.net_b = net_b
        self.rule_a = rule_a
        self.rule_b = rule_b
        super().__init__(
            f"Pin {instance}/{pin} resolves to two nets: '{net_a}' via {rule_a} "
            f"and '{net_b}' via {rule_b}"
        )


class ConnectivityError(PadRingError):
    """Geometry that should form one connected graph does not."""


class CountMismatchError(PadRingError):
    """Number of placed pads differs from the number discovered."""

    def __init__(self, expected: int, placed: int, unplaced: list[str] | None = None) -> None:
        self.expected = expected
        self.placed = placed
        self.unplaced = list(unplaced or [])
        msg = f"Not all pads were placed: expected {expected}, placed {placed}"
        if self.unplaced:
            msg += f" (unplaced: {', '.join(self.unplaced)})"
        super().__init__(msg)
