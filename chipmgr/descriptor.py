"""
Build descriptor generation.

`generate` is a pure function of its inputs: it performs no filesystem or
network access, so the same chip, packages and layout always produce the
same descriptor, with or without a package cache present.
"""
import posixpath
from typing import Iterable, Optional, Sequence, Tuple

from . import config
from .errors import UnknownPackage
from .models import BuildDescriptor, ChipDescriptor, MemoryLayout, PackageRef
from .packages import CATALOG


def _dedup(items: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return tuple(seen)


def library_name(ref: PackageRef) -> str:
    """'F4-I2C-driver' -> 'f4_i2c_driver'"""
    return ref.name.lower().replace("-", "_")


def _defines(chip: ChipDescriptor):
    # The device macro must come from the canonical descriptor, never from the
    # raw part number, or a package-suffixed name ends up in the CMSIS header switch.
    return (
        ("USE_HAL_DRIVER", None),
        (chip.device_macro, None),
        ("HSE_VALUE", f"{chip.clock.hse_hz}U"),
        ("HSI_VALUE", f"{chip.clock.hsi_hz}U"),
    )


def _compile_flags(chip: ChipDescriptor):
    flags = list(config.CPU_FLAGS[chip.core]) + [
        config.OPTIMIZATION,
        config.C_STANDARD,
        "-ffunction-sections",  # Place each function in its own section.
        "-fdata-sections",
    ] + config.COMMON_WARNING_FLAGS
    if config.DEBUG_MODE:
        flags += config.DEBUG_FLAGS
    return _dedup(flags)


def _link_flags(chip: ChipDescriptor, layout: MemoryLayout, linker_script: str):
    flags = list(config.CPU_FLAGS[chip.core]) + [
        f"-T{linker_script}",
        "--specs=nano.specs",  # Use newlib-nano for reduced code size.
        "-Wl,--gc-sections",  # Allow the linker to remove unused sections.
    ]
    names = layout.names()
    if "heap" in names:
        flags.append(f"-Wl,--defsym=_Min_Heap_Size=0x{layout.region('heap').size:X}")
    if "stack" in names:
        flags.append(f"-Wl,--defsym=_Min_Stack_Size=0x{layout.region('stack').size:X}")
    return _dedup(flags + config.LIBRARIES)


def generate(chip: ChipDescriptor, packages: Sequence[PackageRef], layout: MemoryLayout,
             project_includes: Sequence[str] = (), package_root: Optional[str] = None,
             linker_script: Optional[str] = None, catalog=None) -> BuildDescriptor:
    """
    Assembles the build descriptor for one target.

    Args:
        chip (ChipDescriptor): The canonicalized chip.
        packages (sequence of PackageRef): Resolved packages, in resolution order.
        layout (MemoryLayout): The planned memory layout.
        project_includes (sequence of str): Project include directories; they
            precede package directories so project headers shadow package ones.
        package_root (str, optional): Root of the package cache. Defaults to config.CACHE_DIR.
        linker_script (str, optional): Defaults to '<identifier>_FLASH.ld'.
        catalog (dict, optional): Package catalog. Defaults to the shipped one.

    Returns:
        BuildDescriptor
    """
    catalog = CATALOG if catalog is None else catalog
    package_root = config.CACHE_DIR if package_root is None else package_root
    linker_script = linker_script or f"{chip.identifier}_FLASH.ld"

    family_catalog = catalog.get(chip.family)
    if family_catalog is None:
        raise UnknownPackage(packages[0].name if packages else "core support", chip.family)

    include_paths = list(project_includes)
    for ref in packages:
        spec = family_catalog.packages.get(ref.name)
        if spec is None:
            raise UnknownPackage(ref.name, chip.family)
        for include_dir in spec.include_dirs:
            include_paths.append(posixpath.join(package_root, ref.name, ref.version, include_dir))

    # Toolchains resolve duplicate symbols first-seen-wins: device-level drivers
    # go before the base driver, which goes before core support.
    def specificity(ref):
        if ref.name == family_catalog.core:
            return 2
        if ref.name == family_catalog.base:
            return 1
        return 0

    link_targets = _dedup(library_name(ref) for ref in sorted(packages, key=specificity))

    return BuildDescriptor(
        defines=_defines(chip),
        include_paths=_dedup(include_paths),
        link_targets=link_targets,
        compile_flags=_compile_flags(chip),
        link_flags=_link_flags(chip, layout, linker_script),
        linker_script=linker_script,
    )


def render_memory_block(layout: MemoryLayout) -> str:
    """Renders the layout as a GNU ld MEMORY block."""
    lines = ["MEMORY", "{"]
    for region in layout.regions:
        attributes = "r" + ("w" if region.write else "") + ("x" if region.execute else "")
        lines.append(
            f"  {region.name.upper():<8} ({attributes}) : ORIGIN = 0x{region.base:08X}, LENGTH = {region.size}"
        )
    lines.append("}")
    return "\n".join(lines) + "\n"
