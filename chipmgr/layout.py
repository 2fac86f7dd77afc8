"""
Memory layout planning: splits a chip's flash and RAM banks into named regions.

Flash becomes 'text' and 'rodata'; the main RAM bank becomes 'data', 'heap'
and 'stack' (stack on top); every secondary RAM bank (CCM, DTCM, SRAM2, ...)
becomes one region named after the bank, sized independently.
"""
from typing import Dict, Optional

from . import config
from .errors import InvalidOverride, LayoutOverflow, RegionOverlap
from .models import ChipDescriptor, MemoryLayout, MemoryRegion

# Proportional splits per family. Small-RAM parts keep a larger stack share.
FAMILY_LAYOUTS = {
    "default": {
        "flash": {"text": 0.75, "rodata": 0.25},
        "ram": {"data": 0.5, "heap": 0.25, "stack": 0.25},
    },
    "F0": {
        "flash": {"text": 0.8, "rodata": 0.2},
        "ram": {"data": 0.5, "heap": 0.125, "stack": 0.375},
    },
    "G0": {
        "flash": {"text": 0.8, "rodata": 0.2},
        "ram": {"data": 0.5, "heap": 0.125, "stack": 0.375},
    },
    "L0": {
        "flash": {"text": 0.8, "rodata": 0.2},
        "ram": {"data": 0.5, "heap": 0.125, "stack": 0.375},
    },
    "F4": {
        "flash": {"text": 0.75, "rodata": 0.25},
        "ram": {"data": 0.75, "heap": 0.125, "stack": 0.125},
    },
    "F7": {
        "flash": {"text": 0.75, "rodata": 0.25},
        "ram": {"data": 0.75, "heap": 0.125, "stack": 0.125},
    },
    "H7": {
        "flash": {"text": 0.7, "rodata": 0.3},
        "ram": {"data": 0.75, "heap": 0.125, "stack": 0.125},
    },
}

# (region, execute, write)
FLASH_REGIONS = (("text", True, False), ("rodata", False, False))
RAM_REGIONS = (("data", False, True), ("heap", False, True), ("stack", False, True))


def _align_down(value, alignment):
    return value - (value % alignment)


def _normalize_overrides(overrides, valid_names):
    normalized = {}
    for name, value in (overrides or {}).items():
        if name not in valid_names:
            raise InvalidOverride(name, f"no such region (expected one of {', '.join(valid_names)})")
        if not isinstance(value, dict):
            value = {"size": value}
        unknown = set(value) - {"size", "offset"}
        if unknown:
            raise InvalidOverride(name, f"unknown keys {', '.join(sorted(unknown))}")
        for key, number in value.items():
            if isinstance(number, bool) or not isinstance(number, int):
                raise InvalidOverride(name, f"{key} must be an integer number of bytes")
            if number < 0:
                raise InvalidOverride(name, f"{key} must not be negative")
        normalized[name] = value
    return normalized


def _plan_bank(memory, base, capacity, specs, weights, overrides, alignment):
    """Sizes and places the regions of one physical memory bank."""
    fixed = {name: overrides[name]["size"] for name, _, _ in specs
             if "size" in overrides.get(name, {})}
    requested = sum(fixed.values())
    if requested > capacity:
        raise LayoutOverflow(memory, requested, capacity)

    remaining = capacity - requested
    flexible = [name for name, _, _ in specs if name not in fixed]
    total_weight = sum(weights[name] for name in flexible)
    sizes = dict(fixed)
    for name in flexible:
        share = remaining * weights[name] / total_weight if total_weight else 0
        sizes[name] = _align_down(int(share), alignment)
    if flexible:
        # Rounding slack goes to the last flexible region so the bank is fully used.
        sizes[flexible[-1]] += remaining - sum(sizes[name] for name in flexible)

    regions = []
    cursor = 0
    for name, execute, write in specs:
        size = sizes[name]
        offset = overrides.get(name, {}).get("offset", cursor)
        if offset + size > capacity:
            raise LayoutOverflow(memory, offset + size, capacity)
        regions.append(MemoryRegion(name=name, memory=memory, base=base + offset,
                                    size=size, execute=execute, write=write))
        cursor = offset + size
    return regions


def _check_overlaps(regions):
    for index, first in enumerate(regions):
        for second in regions[index + 1:]:
            if first.overlaps(second):
                raise RegionOverlap(first.name, second.name)


def plan(chip: ChipDescriptor, overrides: Optional[Dict[str, object]] = None,
         proportions: Optional[Dict[str, Dict[str, float]]] = None) -> MemoryLayout:
    """
    Plans the memory layout of a chip.

    Args:
        chip (ChipDescriptor): The target chip.
        overrides (dict, optional): {region: size} or {region: {"size": n, "offset": n}}.
            Offsets are relative to the start of the region's bank. Regions
            without an override share whatever their bank has left.
        proportions (dict, optional): Replaces the family's default split,
            shaped like a FAMILY_LAYOUTS entry.

    Returns:
        MemoryLayout: flash regions, then main RAM regions, then secondary banks.

    Raises:
        InvalidOverride: Unknown region name or malformed value.
        LayoutOverflow: Overrides ask for more than a bank physically has.
        RegionOverlap: Two regions end up sharing addresses.
    """
    weights = proportions or FAMILY_LAYOUTS.get(chip.family, FAMILY_LAYOUTS["default"])
    main, secondary = chip.main_ram, chip.ram[1:]

    banks = [
        ("flash", chip.flash_base, chip.flash_size, FLASH_REGIONS, weights["flash"]),
        (main.name, main.base, main.size, RAM_REGIONS, weights["ram"]),
    ]
    for bank in secondary:
        banks.append((bank.name, bank.base, bank.size, ((bank.name, bank.execute, True),), {bank.name: 1.0}))

    valid_names = [name for _, _, _, specs, _ in banks for name, _, _ in specs]
    overrides = _normalize_overrides(overrides, valid_names)

    regions = []
    for memory, base, capacity, specs, bank_weights in banks:
        regions.extend(_plan_bank(memory, base, capacity, specs, bank_weights,
                                  overrides, config.REGION_ALIGNMENT))

    _check_overlaps(regions)
    return MemoryLayout(regions=tuple(regions))
