"""Global connection rules: pattern-matched pin -> net assignment."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import logging
import re
from typing import Iterable, Literal, Mapping

from pg_padring_gen.config import Config, PdnConfig
from pg_padring_gen.errors import AmbiguousConnectionError, ConfigurationError
from pg_padring_gen.geometry import SignalClass
from pg_padring_gen.inventory import PinRef
from pg_padring_gen.registry import DesignDatabase

logger = logging.getLogger(__name__)

Polarity = Literal["power", "ground", "unconstrained"]

POLARITY_CLASS: dict[str, SignalClass] = {
    "power": SignalClass.POWER,
    "ground": SignalClass.GROUND,
}

# Instance name patterns that identify the I/O pad family.
PAD_INSTANCE_PATTERNS = (".*u_pad_.*", ".*IOPad.*", "sg13g2_IOPad.*")


@lru_cache(maxsize=None)
def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"Invalid connection pattern '{pattern}': {exc}") from exc


@dataclass(frozen=True)
class ConnectionRule:
    """Assign NET to every pin named like PIN_PATTERN on instances named like INST_PATTERN.

    Patterns are anchored (full match). Write `.*KEY.*` for substring matching.
    """

    net: str
    pin_pattern: str
    inst_pattern: str | None = None
    polarity: Polarity = "unconstrained"
    tier: int | None = None

    def matches(self, ref: PinRef) -> bool:
        if self.inst_pattern is not None and _compile(self.inst_pattern).fullmatch(ref.instance) is None:
            return False
        return _compile(self.pin_pattern).fullmatch(ref.pin) is not None

    def describe(self, index: int) -> str:
        scope = f"inst '{self.inst_pattern}' " if self.inst_pattern is not None else ""
        tier = f" tier {self.tier}" if self.tier is not None else ""
        return f"rule #{index}{tier} ({scope}pin '{self.pin_pattern}' -> {self.net})"


@dataclass
class ConnectionResult:
    pin_nets: dict[PinRef, str] = field(default_factory=dict)
    # Rule index that first assigned each pin; None for pre-assigned pins.
    sources: dict[PinRef, int | None] = field(default_factory=dict)
    match_counts: list[int] = field(default_factory=list)
    unresolved: list[PinRef] = field(default_factory=list)


def resolve_connections(
    pins: Iterable[PinRef],
    rules: list[ConnectionRule],
    existing: Mapping[PinRef, str] | None = None,
) -> ConnectionResult:
    """Evaluate RULES in order over PINS.

    A pin matched again with the same net is left alone. A pin matched with a
    different net, by another rule or against EXISTING, raises
    AmbiguousConnectionError naming both sources.
    """
    pins = list(pins)
    result = ConnectionResult(match_counts=[0] * len(rules))
    for ref, net in (existing or {}).items():
        result.pin_nets[ref] = net
        result.sources[ref] = None

    for index, rule in enumerate(rules):
        for ref in pins:
            if not rule.matches(ref):
                continue
            result.match_counts[index] += 1
            current = result.pin_nets.get(ref)
            if current is None:
                result.pin_nets[ref] = rule.net
                result.sources[ref] = index
                continue
            if current == rule.net:
                continue

            prior = result.sources.get(ref)
            prior_desc = "pre-assigned net" if prior is None else rules[prior].describe(prior)
            raise AmbiguousConnectionError(
                ref.instance, ref.pin, current, rule.net, prior_desc, rule.describe(index)
            )

    result.unresolved = [ref for ref in pins if ref not in result.pin_nets]
    return result


def default_rules(pdn: PdnConfig) -> list[ConnectionRule]:
    """Standard three-tier rule set for the core and I/O supplies."""
    vdd, vss = pdn.power_net, pdn.ground_net
    iovdd, iovss = pdn.io_power_net, pdn.io_ground_net

    rules = [
        # Tier 1: standard-cell supply pins.
        ConnectionRule(vdd, r"^(VDD|VPWR|VPB)$", polarity="power", tier=1),
        ConnectionRule(vss, r"^(VSS|VGND|VNB)$", polarity="ground", tier=1),
    ]

    # Tier 2: pad family supply pins, core and I/O domains.
    for pattern in PAD_INSTANCE_PATTERNS:
        rules += [
            ConnectionRule(vdd, r"^(VDD|vdd)$", pattern, "power", 2),
            ConnectionRule(vss, r"^(VSS|vss)$", pattern, "ground", 2),
            ConnectionRule(iovdd, r"^(IOVDD|iovdd)$", pattern, "power", 2),
            ConnectionRule(iovss, r"^(IOVSS|iovss)$", pattern, "ground", 2),
        ]
    # Bond pin of each supply pad carries that pad's own supply.
    rules += [
        ConnectionRule(vdd, r"^pad$", ".*u_pad_vdd.*", "power", 2),
        ConnectionRule(vss, r"^pad$", ".*u_pad_vss.*", "ground", 2),
        ConnectionRule(iovdd, r"^pad$", ".*u_pad_iovdd.*", "power", 2),
        ConnectionRule(iovss, r"^pad$", ".*u_pad_iovss.*", "ground", 2),
    ]

    # Tier 3: broad fallback. Must agree with tiers 1 and 2 or resolution fails.
    rules += [
        ConnectionRule(vdd, ".*VDD.*", polarity="power", tier=3),
        ConnectionRule(vss, ".*VSS.*", polarity="ground", tier=3),
    ]
    return rules


def rules_from_config(config: Config) -> list[ConnectionRule]:
    if config.connections is None:
        return default_rules(config.pdn)
    return [
        ConnectionRule(
            net=r.net,
            pin_pattern=r.pin_pattern,
            inst_pattern=r.inst_pattern,
            polarity=r.polarity,
            tier=r.tier,
        )
        for r in config.connections
    ]


def apply_connections(
    db: DesignDatabase,
    pins: Iterable[PinRef],
    rules: list[ConnectionRule],
    declared: Mapping[PinRef, str] | None = None,
) -> ConnectionResult:
    """Register every rule net, resolve PINS and store the map on DB."""
    for rule in rules:
        signal_class = POLARITY_CLASS.get(rule.polarity)
        if signal_class is not None:
            db.ensure_net(rule.net, signal_class)
        elif db.find_net(rule.net) is None:
            db.ensure_net(rule.net, SignalClass.SIGNAL)
    for net in sorted(set((declared or {}).values())):
        if db.find_net(net) is None:
            db.ensure_net(net, SignalClass.SIGNAL)

    existing = dict(db.pin_nets)
    for ref, net in (declared or {}).items():
        current = existing.setdefault(ref, net)
        if current != net:
            raise AmbiguousConnectionError(
                ref.instance, ref.pin, current, net, "pre-assigned net", "declared net"
            )

    result = resolve_connections(pins, rules, existing=existing)

    for index, (rule, count) in enumerate(zip(rules, result.match_counts)):
        logger.debug("Applied %s: %d pin(s)", rule.describe(index), count)
    logger.info(
        "Global connections applied: %d rule(s), %d pin(s) connected, %d unresolved",
        len(rules),
        len(result.pin_nets),
        len(result.unresolved),
    )

    db.pin_nets = dict(result.pin_nets)
    db.rule_matches = list(result.match_counts)
    return result
