# chips.py
# Static chip table for the supported STM32 subfamilies, plus the registry that
# turns a part number into a ChipDescriptor.
#
# An STM32 part number reads: STM32 + subfamily (F405) + pin count (R) +
# flash size (G) + package (T) + temperature range (6) [+ packing, e.g. TR].
# Only the subfamily and the flash size code matter for build configuration.
import re
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import AmbiguousChip, UnknownChip
from .models import ChipDescriptor, ClockDefaults, RamBank

KB = 1024

FLASH_BASE = 0x08000000

# Flash size code -> bytes.
FLASH_CODES = {
    "4": 16 * KB, "6": 32 * KB, "8": 64 * KB, "B": 128 * KB,
    "Z": 192 * KB, "C": 256 * KB, "D": 384 * KB, "E": 512 * KB,
    "F": 768 * KB, "G": 1024 * KB, "H": 1536 * KB, "I": 2048 * KB,
}

# Pin count code -> number of pins.
PIN_CODES = {
    "F": 20, "G": 28, "K": 32, "T": 36, "S": 44, "C": 48, "U": 63,
    "R": 64, "J": 72, "M": 80, "O": 90, "V": 100, "Q": 132, "Z": 144,
    "A": 169, "I": 176, "B": 208, "N": 216,
}

# Family-wide data: core, debug transports, OpenOCD target script and
# default clocks (HSI, board HSE, max SYSCLK) in Hz.
FAMILIES = {
    "F0": {"core": "cortex-m0", "transports": ["SWD"], "openocd_target": "target/stm32f0x.cfg",
           "clock": (8_000_000, 8_000_000, 48_000_000)},
    "F1": {"core": "cortex-m3", "transports": ["SWD", "JTAG"], "openocd_target": "target/stm32f1x.cfg",
           "clock": (8_000_000, 8_000_000, 72_000_000)},
    "F4": {"core": "cortex-m4", "transports": ["SWD", "JTAG"], "openocd_target": "target/stm32f4x.cfg",
           "clock": (16_000_000, 8_000_000, 168_000_000)},
    "F7": {"core": "cortex-m7", "transports": ["SWD", "JTAG"], "openocd_target": "target/stm32f7x.cfg",
           "clock": (16_000_000, 25_000_000, 216_000_000)},
    "G0": {"core": "cortex-m0plus", "transports": ["SWD"], "openocd_target": "target/stm32g0x.cfg",
           "clock": (16_000_000, 8_000_000, 64_000_000)},
    "G4": {"core": "cortex-m4", "transports": ["SWD", "JTAG"], "openocd_target": "target/stm32g4x.cfg",
           "clock": (16_000_000, 24_000_000, 170_000_000)},
    "H7": {"core": "cortex-m7", "transports": ["SWD", "JTAG"], "openocd_target": "target/stm32h7x.cfg",
           "clock": (64_000_000, 25_000_000, 480_000_000)},
    "L0": {"core": "cortex-m0plus", "transports": ["SWD"], "openocd_target": "target/stm32l0.cfg",
           "clock": (16_000_000, 8_000_000, 32_000_000)},
    "L4": {"core": "cortex-m4", "transports": ["SWD", "JTAG"], "openocd_target": "target/stm32l4x.cfg",
           "clock": (16_000_000, 8_000_000, 80_000_000)},
}

_F4_COMMON = ["GPIO", "DMA", "UART", "I2C", "SPI", "ADC", "TIM", "RTC", "CRC", "IWDG"]

# Subfamily table. 'ram' lists banks as (name, base, size, executable), main
# bank first. 'macro' is either one macro for the whole subfamily or a map
# keyed by flash code, for subfamilies whose CMSIS header depends on density.
CHIPS = {
    "F030": {
        "family": "F0",
        "macro": {"4": "STM32F030x6", "6": "STM32F030x6", "8": "STM32F030x8", "C": "STM32F030xC"},
        "flash": ["4", "6", "8", "C"],
        "ram": [("main", 0x20000000, 4 * KB, True)],
        "main_ram_by_flash": {"4": 4 * KB, "6": 4 * KB, "8": 8 * KB, "C": 32 * KB},
        "capabilities": ["GPIO", "DMA", "UART", "I2C", "SPI", "ADC", "TIM", "RTC", "CRC", "IWDG"],
        "svd": "STM32F030.svd",
    },
    "F103": {
        "family": "F1",
        "macro": {
            "4": "STM32F103x6", "6": "STM32F103x6",
            "8": "STM32F103xB", "B": "STM32F103xB",
            "C": "STM32F103xE", "D": "STM32F103xE", "E": "STM32F103xE",
            "F": "STM32F103xG", "G": "STM32F103xG",
        },
        "flash": ["4", "6", "8", "B", "C", "D", "E", "F", "G"],
        "ram": [("main", 0x20000000, 20 * KB, True)],
        "main_ram_by_flash": {
            "4": 6 * KB, "6": 10 * KB, "8": 20 * KB, "B": 20 * KB, "C": 48 * KB,
            "D": 64 * KB, "E": 64 * KB, "F": 96 * KB, "G": 96 * KB,
        },
        "capabilities": ["GPIO", "DMA", "UART", "I2C", "SPI", "ADC", "DAC", "TIM", "CAN", "USB", "RTC", "CRC", "IWDG"],
        "svd": "STM32F103xx.svd",
    },
    "F401": {
        "family": "F4",
        "macro": {"B": "STM32F401xC", "C": "STM32F401xC", "D": "STM32F401xE", "E": "STM32F401xE"},
        "flash": ["B", "C", "D", "E"],
        "ram": [("main", 0x20000000, 64 * KB, True)],
        "main_ram_by_flash": {"B": 64 * KB, "C": 64 * KB, "D": 96 * KB, "E": 96 * KB},
        "capabilities": _F4_COMMON + ["USB", "SDIO"],
        "sysclk_max": 84_000_000,
        "svd": "STM32F401.svd",
    },
    "F405": {
        "family": "F4",
        "macro": "STM32F405xx",
        "flash": ["E", "G"],
        "ram": [("main", 0x20000000, 128 * KB, True), ("ccm", 0x10000000, 64 * KB, False)],
        "capabilities": _F4_COMMON + ["DAC", "CAN", "USB", "RNG", "SDIO"],
        "svd": "STM32F405.svd",
    },
    "F407": {
        "family": "F4",
        "macro": "STM32F407xx",
        "flash": ["E", "G"],
        "ram": [("main", 0x20000000, 128 * KB, True), ("ccm", 0x10000000, 64 * KB, False)],
        "capabilities": _F4_COMMON + ["DAC", "CAN", "USB", "RNG", "SDIO", "ETH", "DCMI"],
        "svd": "STM32F407.svd",
    },
    "F411": {
        "family": "F4",
        "macro": "STM32F411xE",
        "flash": ["C", "E"],
        "ram": [("main", 0x20000000, 128 * KB, True)],
        "capabilities": _F4_COMMON + ["USB", "SDIO"],
        "sysclk_max": 100_000_000,
        "svd": "STM32F411.svd",
    },
    "F429": {
        "family": "F4",
        "macro": "STM32F429xx",
        "flash": ["E", "G", "I"],
        "ram": [("main", 0x20000000, 192 * KB, True), ("ccm", 0x10000000, 64 * KB, False)],
        "capabilities": _F4_COMMON + ["DAC", "CAN", "USB", "RNG", "SDIO", "ETH", "DCMI", "LTDC"],
        "sysclk_max": 180_000_000,
        "svd": "STM32F429.svd",
    },
    "F746": {
        "family": "F7",
        "macro": "STM32F746xx",
        "flash": ["E", "G"],
        "ram": [
            ("main", 0x20010000, 256 * KB, True),
            ("dtcm", 0x20000000, 64 * KB, False),
            ("itcm", 0x00000000, 16 * KB, True),
        ],
        "capabilities": [
            "GPIO", "DMA", "UART", "I2C", "SPI", "ADC", "DAC", "TIM", "CAN", "USB", "RTC",
            "RNG", "SDMMC", "ETH", "DCMI", "LTDC", "QSPI", "CRC", "IWDG",
        ],
        "svd": "STM32F746.svd",
    },
    "G071": {
        "family": "G0",
        "macro": "STM32G071xx",
        "flash": ["6", "8", "B"],
        "ram": [("main", 0x20000000, 36 * KB, True)],
        "capabilities": ["GPIO", "DMA", "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "RTC", "CRC", "IWDG"],
        "svd": "STM32G071.svd",
    },
    "G431": {
        "family": "G4",
        "macro": "STM32G431xx",
        "flash": ["6", "8", "B"],
        "ram": [("main", 0x20000000, 22 * KB, True), ("ccm", 0x10000000, 10 * KB, True)],
        "capabilities": [
            "GPIO", "DMA", "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "FDCAN",
            "USB", "RTC", "RNG", "CRC", "IWDG",
        ],
        "svd": "STM32G431xx.svd",
    },
    "G474": {
        "family": "G4",
        "macro": "STM32G474xx",
        "flash": ["B", "C", "E"],
        "ram": [("main", 0x20000000, 96 * KB, True), ("ccm", 0x10000000, 32 * KB, True)],
        "capabilities": [
            "GPIO", "DMA", "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "FDCAN",
            "USB", "RTC", "RNG", "QSPI", "CRC", "IWDG",
        ],
        "svd": "STM32G474xx.svd",
    },
    "H743": {
        "family": "H7",
        "macro": "STM32H743xx",
        "flash": ["G", "I"],
        "ram": [
            ("main", 0x24000000, 512 * KB, True),
            ("dtcm", 0x20000000, 128 * KB, False),
            ("itcm", 0x00000000, 64 * KB, True),
            ("sram_d2", 0x30000000, 288 * KB, True),
        ],
        "capabilities": [
            "GPIO", "DMA", "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "FDCAN", "USB",
            "RTC", "RNG", "SDMMC", "ETH", "DCMI", "LTDC", "QSPI", "CRC", "IWDG",
        ],
        "svd": "STM32H743.svd",
    },
    "L073": {
        "family": "L0",
        "macro": "STM32L073xx",
        "flash": ["8", "B", "Z"],
        "ram": [("main", 0x20000000, 20 * KB, True)],
        "capabilities": [
            "GPIO", "DMA", "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "USB", "RTC", "RNG", "CRC", "IWDG",
        ],
        "svd": "STM32L0x3.svd",
    },
    "L476": {
        "family": "L4",
        "macro": "STM32L476xx",
        "flash": ["C", "E", "G"],
        "ram": [("main", 0x20000000, 96 * KB, True), ("sram2", 0x10000000, 32 * KB, True)],
        "capabilities": [
            "GPIO", "DMA", "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "CAN", "USB",
            "RTC", "RNG", "SDMMC", "QSPI", "CRC", "IWDG",
        ],
        "svd": "STM32L4x6.svd",
    },
}

_PART_RE = re.compile(r"^(?:STM32)?([A-Z0-9]+)$")
# Package letter, temperature range digit, then up to three option or packing characters.
_TAIL_RE = re.compile(r"^(?:[A-Z](?:[0-9][A-Z0-9]{0,3})?)?$")


@dataclass(frozen=True)
class ChipId:
    """A canonicalized part number: the subfamily plus its flash size code."""
    subfamily: str
    flash_code: str
    pin_code: Optional[str] = None

    @property
    def name(self) -> str:
        return f"STM32{self.subfamily}x{self.flash_code}"


def canonicalize(identifier: str, chips: Optional[Dict[str, dict]] = None) -> ChipId:
    """
    Collapses a chip part number onto its family-wide canonical form.

    Pin count, package, temperature range and packing suffixes are dropped;
    the subfamily and flash size code are kept. The result is the same for
    "STM32F405RGT6", "stm32f405vg" and "STM32F405xG".

    Args:
        identifier (str): The part number as the user wrote it.
        chips (dict, optional): Subfamily table to match against. Defaults to CHIPS.

    Returns:
        ChipId: The canonical identifier.

    Raises:
        UnknownChip: No subfamily matches, or the suffix is not valid for it.
        AmbiguousChip: The identifier matches several subfamilies or flash sizes.
    """
    chips = CHIPS if chips is None else chips
    text = "".join(identifier.split()).upper()
    match = _PART_RE.match(text)
    if not match:
        raise UnknownChip(identifier, "not an STM32 part number")
    text = match.group(1)

    # Longest key first so a nested key (F40 vs F405) reports its own error.
    keys = sorted((key for key in chips if text.startswith(key)), key=len, reverse=True)
    if not keys:
        candidates = [f"STM32{key}" for key in sorted(chips) if key.startswith(text)]
        if len(candidates) > 1:
            raise AmbiguousChip(identifier, candidates)
        if candidates:
            raise UnknownChip(identifier, f"incomplete part number, did you mean {candidates[0]}?")
        raise UnknownChip(identifier)

    parsed, errors = [], []
    for key in keys:
        try:
            parsed.append(_parse_suffix(identifier, key, text[len(key):], chips[key]))
        except (UnknownChip, AmbiguousChip) as e:
            errors.append(e)

    if len(parsed) > 1:
        raise AmbiguousChip(identifier, [chip_id.name for chip_id in parsed])
    if parsed:
        return parsed[0]
    raise errors[0]


def _parse_suffix(identifier, subfamily, suffix, entry) -> ChipId:
    """Reads the pin, flash and trailing package codes after `subfamily`."""
    pin_code = suffix[:1] or None
    flash_code = suffix[1:2] or None
    rest = suffix[2:]

    if pin_code == "X":
        pin_code = None
    elif pin_code is not None and pin_code not in PIN_CODES:
        raise UnknownChip(identifier, f"invalid pin count code '{pin_code}'")

    if flash_code in (None, "X"):
        if len(entry["flash"]) != 1:
            options = [f"STM32{subfamily}x{code}" for code in entry["flash"]]
            raise AmbiguousChip(identifier, options)
        flash_code = entry["flash"][0]
    elif flash_code not in entry["flash"]:
        raise UnknownChip(identifier, f"STM32{subfamily} has no flash size code '{flash_code}'")

    if not _TAIL_RE.match(rest):
        raise UnknownChip(identifier, f"unexpected characters '{rest}' after the flash size code")

    return ChipId(subfamily=subfamily, flash_code=flash_code, pin_code=pin_code)


class ChipRegistry:
    """
    Read-only lookup from part numbers to ChipDescriptors.

    The tables are passed in so tests can substitute a minimal fixture
    registry; `default_registry()` uses the shipped ones.
    """

    def __init__(self, chips=None, families=None):
        self._chips = CHIPS if chips is None else chips
        self._families = FAMILIES if families is None else families

    def canonicalize(self, identifier: str) -> ChipId:
        return canonicalize(identifier, self._chips)

    def lookup(self, identifier: str) -> ChipDescriptor:
        """Canonicalizes `identifier` and returns its ChipDescriptor."""
        chip_id = self.canonicalize(identifier)
        entry = self._chips[chip_id.subfamily]
        family = self._families.get(entry["family"])
        if family is None:
            raise UnknownChip(identifier, f"family '{entry['family']}' is not registered")

        macro = entry["macro"]
        if isinstance(macro, dict):
            macro = macro[chip_id.flash_code]

        banks = []
        for index, (name, base, size, execute) in enumerate(entry["ram"]):
            if index == 0 and "main_ram_by_flash" in entry:
                size = entry["main_ram_by_flash"][chip_id.flash_code]
            banks.append(RamBank(name=name, base=base, size=size, execute=execute))

        hsi, hse, sysclk = family["clock"]
        return ChipDescriptor(
            identifier=chip_id.name,
            family=entry["family"],
            core=family["core"],
            device_macro=macro,
            flash_size=FLASH_CODES[chip_id.flash_code],
            flash_base=entry.get("flash_base", FLASH_BASE),
            ram=tuple(banks),
            clock=ClockDefaults(hsi_hz=hsi, hse_hz=hse, sysclk_max_hz=entry.get("sysclk_max", sysclk)),
            capabilities=frozenset(entry["capabilities"]),
            transports=tuple(entry.get("transports", family["transports"])),
            svd_file=entry.get("svd"),
            openocd_target=family.get("openocd_target"),
        )

    def identifiers(self):
        """Lists the canonical identifier of every chip in the registry."""
        return [
            f"STM32{subfamily}x{code}"
            for subfamily, entry in sorted(self._chips.items())
            for code in entry["flash"]
        ]

    def __contains__(self, identifier):
        try:
            self.canonicalize(identifier)
        except (UnknownChip, AmbiguousChip):
            return False
        return True


def default_registry() -> ChipRegistry:
    return ChipRegistry(CHIPS, FAMILIES)
