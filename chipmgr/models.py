"""
Value objects passed between the resolution stages.

Everything here is immutable: registry entries are loaded once and never
changed, and every derived object is built fresh for one resolution run.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple


@dataclass(frozen=True)
class RamBank:
    """A physically separate RAM block (e.g. main SRAM, CCM, DTCM)."""
    name: str
    base: int
    size: int
    execute: bool = True


@dataclass(frozen=True)
class ClockDefaults:
    hsi_hz: int
    hse_hz: int
    sysclk_max_hz: int


@dataclass(frozen=True)
class ChipDescriptor:
    """
    Registry data for one chip subfamily at one flash density.

    `identifier` is the canonical form (e.g. "STM32F405xG"); every part
    number differing only by pin count, package or temperature range maps
    to the same descriptor.
    """
    identifier: str
    family: str
    core: str
    device_macro: str
    flash_size: int
    flash_base: int
    ram: Tuple[RamBank, ...]
    clock: ClockDefaults
    capabilities: FrozenSet[str]
    transports: Tuple[str, ...]
    svd_file: Optional[str] = None
    openocd_target: Optional[str] = None

    @property
    def ram_size(self) -> int:
        return sum(bank.size for bank in self.ram)

    @property
    def main_ram(self) -> RamBank:
        return self.ram[0]

    def bank(self, name: str) -> RamBank:
        for bank in self.ram:
            if bank.name == name:
                return bank
        raise KeyError(name)


class CapabilityRequest:
    """
    Ordered set of peripheral capability tags.

    Tags are upper-cased; duplicates collapse onto their first occurrence so
    generated output stays in the order the project asked for.
    """

    __slots__ = ("tags",)

    def __init__(self, tags: Iterable[str] = ()):
        seen = []
        for tag in tags:
            tag = tag.strip().upper()
            if tag and tag not in seen:
                seen.append(tag)
        self.tags = tuple(seen)

    def __iter__(self):
        return iter(self.tags)

    def __len__(self):
        return len(self.tags)

    def __contains__(self, tag):
        return tag.upper() in self.tags

    def __eq__(self, other):
        if not isinstance(other, CapabilityRequest):
            return NotImplemented
        return set(self.tags) == set(other.tags)

    def __hash__(self):
        return hash(frozenset(self.tags))

    def __repr__(self):
        return f"CapabilityRequest({list(self.tags)!r})"


@dataclass(frozen=True)
class PackageRef:
    """A resolved driver/core package. Identity is (name, version)."""
    name: str
    version: str
    constraint: str = field(default="", compare=False)
    source: str = field(default="", compare=False)

    def __str__(self):
        return f"{self.name}=={self.version}"


@dataclass(frozen=True)
class MemoryRegion:
    name: str
    memory: str  # "flash" or the name of a RAM bank
    base: int
    size: int
    execute: bool
    write: bool

    @property
    def end(self) -> int:
        return self.base + self.size

    def contains(self, address: int) -> bool:
        return self.base <= address < self.end

    def overlaps(self, other: "MemoryRegion") -> bool:
        if self.size == 0 or other.size == 0:
            return False
        return self.base < other.end and other.base < self.end


@dataclass(frozen=True)
class MemoryLayout:
    regions: Tuple[MemoryRegion, ...]

    def region(self, name: str) -> MemoryRegion:
        for region in self.regions:
            if region.name == name:
                return region
        raise KeyError(name)

    def region_at(self, address: int) -> Optional[MemoryRegion]:
        """Returns the region holding `address`, or None."""
        for region in self.regions:
            if region.contains(address):
                return region
        return None

    def regions_in(self, memory: str) -> Tuple[MemoryRegion, ...]:
        return tuple(r for r in self.regions if r.memory == memory)

    @property
    def total_size(self) -> int:
        return sum(r.size for r in self.regions)

    def names(self) -> Tuple[str, ...]:
        return tuple(r.name for r in self.regions)


@dataclass(frozen=True)
class BuildDescriptor:
    """Abstract build graph node handed to an external compiler/linker."""
    defines: Tuple[Tuple[str, Optional[str]], ...]
    include_paths: Tuple[str, ...]
    link_targets: Tuple[str, ...]
    compile_flags: Tuple[str, ...]
    link_flags: Tuple[str, ...]
    linker_script: str

    def define_flags(self) -> list:
        return [f"-D{name}" if value is None else f"-D{name}={value}" for name, value in self.defines]

    def include_flags(self) -> list:
        return [f"-I{path}" for path in self.include_paths]

    def library_flags(self) -> list:
        return [f"-l{name}" for name in self.link_targets]

    def to_dict(self) -> Dict[str, object]:
        return {
            "defines": dict(self.defines),
            "include_paths": list(self.include_paths),
            "link_targets": list(self.link_targets),
            "compile_flags": list(self.compile_flags),
            "link_flags": list(self.link_flags),
            "linker_script": self.linker_script,
        }


class ProbeKind(Enum):
    JLINK = "jlink"
    STLINK = "stlink"
    OPENOCD = "openocd"

    @property
    def vendor_direct(self) -> bool:
        return self is not ProbeKind.OPENOCD


class Transport(Enum):
    SWD = "SWD"
    JTAG = "JTAG"


@dataclass(frozen=True)
class DebugLaunchDescriptor:
    probe: ProbeKind
    transport: Transport
    chip: str
    server_type: str
    svd_file: Optional[str] = None
    config_files: Tuple[str, ...] = ()
    adapter: Optional[str] = None

    def server_args(self) -> list:
        """Returns the argument list for the debug server executable."""
        if self.probe is ProbeKind.OPENOCD:
            interface, *targets = self.config_files
            transport = self.transport.value.lower()
            if self.adapter == "stlink":
                # The ST-Link interface script only offers the high-level adapter transports.
                transport = f"hla_{transport}"
            args = ["-f", interface, "-c", f"transport select {transport}"]
            for target in targets:
                args += ["-f", target]
            return args
        if self.probe is ProbeKind.JLINK:
            return ["-device", self.chip, "-if", self.transport.value, "-speed", "auto"]
        return ["--swd"] if self.transport is Transport.SWD else []

    def to_dict(self) -> Dict[str, object]:
        return {
            "probe": self.probe.value,
            "server_type": self.server_type,
            "transport": self.transport.value,
            "chip": self.chip,
            "svd_file": self.svd_file,
            "config_files": list(self.config_files),
            "server_args": self.server_args(),
        }


@dataclass(frozen=True)
class BuildOutput:
    """What the external compiler produced: the ELF path and its section table."""
    image_path: str
    sections: Dict[str, int]
    # Section start addresses, when the size tool reported them.
    addresses: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class BinaryImage:
    path: str
    hex_path: str
    load_address: int
    size: int

    def objcopy_commands(self, elf_path: str, toolchain_prefix: str) -> list:
        """Returns the objcopy invocations an external step runs to produce the images."""
        objcopy = toolchain_prefix + "objcopy"
        return [
            [objcopy, "-O", "ihex", elf_path, self.hex_path],
            [objcopy, "-O", "binary", "-S", elf_path, self.path],
        ]


@dataclass(frozen=True)
class ArtifactReport:
    image: BinaryImage
    sizes: Dict[str, int]
    bounds: Dict[str, int]
    overflows: tuple = ()

    @property
    def passed(self) -> bool:
        return not self.overflows

    def raise_for_overflow(self):
        """Raises the first ArtifactOverflow, if any region exceeded its bound."""
        if self.overflows:
            raise self.overflows[0]

    def to_dict(self) -> Dict[str, object]:
        return {
            "binary": self.image.path,
            "load_address": f"0x{self.image.load_address:08X}",
            "sizes": dict(self.sizes),
            "bounds": dict(self.bounds),
            "passed": self.passed,
            "overflows": [
                {"region": o.region, "measured": o.measured, "bound": o.bound, "overshoot": o.overshoot}
                for o in self.overflows
            ],
        }
