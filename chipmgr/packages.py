# packages.py
# Family -> capability -> package mapping, with the known versions of every
# package and what each version requires from the others.
#
# Every family ships three kinds of packages:
#   <FAMILY>-core          CMSIS device headers and startup code
#   <FAMILY>-base-driver   HAL core (RCC, Cortex, PWR, Flash) plus the
#                          capabilities listed under 'in_base'
#   <FAMILY>-<CAP>-driver  one HAL module per remaining capability
from dataclasses import dataclass, field
from typing import Dict, Tuple

FAMILY_PACKAGES = {
    "F0": {
        "core": ("cmsis_device_f0", ["2.3.6", "2.3.7"]),
        "hal": ("stm32f0xx_hal_driver", [("1.7.6", ">=2.3.6"), ("1.7.7", ">=2.3.6"), ("1.7.8", ">=2.3.7")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": ["UART", "I2C", "SPI", "ADC", "DAC", "TIM", "CAN", "USB", "RTC", "CRC", "IWDG"],
    },
    "F1": {
        "core": ("cmsis_device_f1", ["4.3.3", "4.3.4"]),
        "hal": ("stm32f1xx_hal_driver", [("1.1.8", ">=4.3.3"), ("1.1.9", ">=4.3.4")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": ["UART", "I2C", "SPI", "ADC", "DAC", "TIM", "CAN", "USB", "RTC", "SDIO", "ETH", "CRC", "IWDG"],
    },
    "F4": {
        "core": ("cmsis_device_f4", ["2.6.8", "2.6.9", "2.6.10"]),
        "hal": ("stm32f4xx_hal_driver", [("1.7.13", ">=2.6.0,<2.6.9"), ("1.8.2", ">=2.6.9"), ("1.8.3", ">=2.6.9")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": [
            "UART", "I2C", "SPI", "ADC", "DAC", "TIM", "CAN", "USB", "RTC", "RNG",
            "SDIO", "ETH", "DCMI", "LTDC", "CRC", "IWDG",
        ],
    },
    "F7": {
        "core": ("cmsis_device_f7", ["1.2.8", "1.2.9"]),
        "hal": ("stm32f7xx_hal_driver", [("1.3.0", ">=1.2.8"), ("1.3.1", ">=1.2.9")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": [
            "UART", "I2C", "SPI", "ADC", "DAC", "TIM", "CAN", "USB", "RTC", "RNG",
            "SDMMC", "ETH", "DCMI", "LTDC", "QSPI", "CRC", "IWDG",
        ],
    },
    "G0": {
        "core": ("cmsis_device_g0", ["1.4.3", "1.4.4"]),
        "hal": ("stm32g0xx_hal_driver", [("1.4.5", ">=1.4.3"), ("1.4.6", ">=1.4.4")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": ["UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "FDCAN", "USB", "RTC", "CRC", "IWDG"],
    },
    "G4": {
        "core": ("cmsis_device_g4", ["1.2.3", "1.2.4"]),
        "hal": ("stm32g4xx_hal_driver", [("1.2.3", ">=1.2.3"), ("1.2.4", ">=1.2.4")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": [
            "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "FDCAN", "USB", "RTC",
            "RNG", "QSPI", "CRC", "IWDG",
        ],
    },
    "H7": {
        "core": ("cmsis_device_h7", ["1.10.4", "1.10.5"]),
        "hal": ("stm32h7xx_hal_driver", [("1.11.2", ">=1.10.4"), ("1.11.3", ">=1.10.5")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": [
            "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "FDCAN", "USB", "RTC",
            "RNG", "SDMMC", "ETH", "DCMI", "LTDC", "QSPI", "CRC", "IWDG",
        ],
    },
    "L0": {
        "core": ("cmsis_device_l0", ["1.9.3", "1.9.4"]),
        "hal": ("stm32l0xx_hal_driver", [("1.10.5", ">=1.9.3"), ("1.10.6", ">=1.9.4")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": ["UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "USB", "RTC", "RNG", "CRC", "IWDG"],
    },
    "L4": {
        "core": ("cmsis_device_l4", ["1.7.3", "1.7.4"]),
        "hal": ("stm32l4xx_hal_driver", [("1.13.4", ">=1.7.3"), ("1.13.5", ">=1.7.4")]),
        "in_base": ["GPIO", "DMA"],
        "drivers": [
            "UART", "LPUART", "I2C", "SPI", "ADC", "DAC", "TIM", "CAN", "USB", "RTC",
            "RNG", "SDMMC", "QSPI", "CRC", "IWDG",
        ],
    },
}

CORE_INCLUDE_DIRS = ("Include",)
BASE_INCLUDE_DIRS = ("Inc", "Inc/Legacy")
DRIVER_INCLUDE_DIRS = ("Inc",)


@dataclass(frozen=True)
class PackageSpec:
    """
    One package and its known versions.

    `versions` maps each version to the requirements it places on other
    packages, as {package_name: specifier}.
    """
    name: str
    repo: str
    include_dirs: Tuple[str, ...]
    versions: Dict[str, Dict[str, str]]


@dataclass(frozen=True)
class FamilyCatalog:
    family: str
    core: str
    base: str
    capabilities: Dict[str, str]
    packages: Dict[str, PackageSpec] = field(default_factory=dict)


def core_package(family):
    return f"{family}-core"


def base_package(family):
    return f"{family}-base-driver"


def driver_package(family, capability):
    return f"{family}-{capability}-driver"


def _minor_series(version):
    """'1.8.3' -> '>=1.8.0,<1.9'"""
    major, minor = (int(part) for part in version.split(".")[:2])
    return f">={major}.{minor}.0,<{major}.{minor + 1}"


def _family_catalog(family, table):
    core_repo, core_versions = table["core"]
    hal_repo, hal_versions = table["hal"]
    core = core_package(family)
    base = base_package(family)

    packages = {
        core: PackageSpec(core, core_repo, CORE_INCLUDE_DIRS, {v: {} for v in core_versions}),
        base: PackageSpec(base, hal_repo, BASE_INCLUDE_DIRS, {v: {core: spec} for v, spec in hal_versions}),
    }
    capabilities = {tag: base for tag in table["in_base"]}
    for tag in table["drivers"]:
        name = driver_package(family, tag)
        # Peripheral modules ship with the HAL and must stay on the base driver's minor series.
        versions = {v: {base: _minor_series(v)} for v, _ in hal_versions}
        packages[name] = PackageSpec(name, hal_repo, DRIVER_INCLUDE_DIRS, versions)
        capabilities[tag] = name

    return FamilyCatalog(family=family, core=core, base=base, capabilities=capabilities, packages=packages)


def build_catalog(tables=None):
    """Builds the {family: FamilyCatalog} mapping from FAMILY_PACKAGES-shaped tables."""
    tables = FAMILY_PACKAGES if tables is None else tables
    return {family: _family_catalog(family, table) for family, table in tables.items()}


CATALOG = build_catalog()
