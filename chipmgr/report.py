"""
Artifact reporting: turns the external compiler's output into a flashable
binary descriptor and a size report checked against the planned layout.
"""
import os
import re
import subprocess
from typing import Dict, Optional

from . import config
from .errors import ArtifactOverflow
from .models import ArtifactReport, BinaryImage, BuildOutput, MemoryLayout

# Output sections that end up in flash, by the region they are measured against.
TEXT_SECTIONS = (
    ".isr_vector", ".text", ".ARM.extab", ".ARM.exidx", ".ARM",
    ".preinit_array", ".init_array", ".fini_array",
)
RODATA_SECTIONS = (".rodata",)
# RAM sections with a load image in flash.
DATA_SECTIONS = (".data", ".tdata", ".RamFunc")
# RAM sections without one.
BSS_SECTIONS = (".bss", ".tbss", ".noinit")

# Debug info and metadata; never loaded onto the chip.
IGNORED_PREFIXES = (
    ".debug", ".comment", ".ARM.attributes", ".stab", ".gnu.attributes",
    ".gnu_debuglink", ".symtab", ".strtab", ".shstrtab", "._user_heap_stack",
)

MAIN_RAM_REGIONS = ("data", "heap", "stack")

_SIZE_LINE_RE = re.compile(r"^\s*(\.\S+)\s+(\d+)\s+(\d+)\s*$")


def _rows(text):
    for line in text.splitlines():
        match = _SIZE_LINE_RE.match(line)
        if match:
            yield match.group(1), int(match.group(2)), int(match.group(3))


def parse_size_table(text: str) -> Dict[str, int]:
    """
    Parses the output of `size -A -d <elf>` into {section: size}.

    Header, 'Total' and blank lines are skipped.
    """
    sections = {}
    for name, size, _ in _rows(text):
        sections[name] = sections.get(name, 0) + size
    return sections


def parse_section_addresses(text: str) -> Dict[str, int]:
    """Parses the address column of `size -A -d <elf>` into {section: address}."""
    addresses = {}
    for name, _, address in _rows(text):
        addresses.setdefault(name, address)
    return addresses


def read_sections(elf_path: str, size_tool: Optional[str] = None) -> BuildOutput:
    """Runs the toolchain's size utility on `elf_path` and returns its section table."""
    if size_tool is None:
        size_tool = config.TOOLCHAIN_PREFIX + "size"
        if config.TOOLCHAIN_PATH:
            size_tool = os.path.join(config.TOOLCHAIN_PATH, size_tool)
    result = subprocess.run([size_tool, "-A", "-d", elf_path], capture_output=True, text=True, check=True)
    return BuildOutput(
        image_path=elf_path,
        sections=parse_size_table(result.stdout),
        addresses=parse_section_addresses(result.stdout),
    )


def _matches(section, names):
    return any(section == name or section.startswith(name + ".") for name in names)


def _by_address(address, layout: MemoryLayout) -> Optional[str]:
    region = layout.region_at(address)
    if region is None:
        return None
    if region.name == "data":
        # Without a load image, unnamed sections in .data's range behave like .bss.
        return "bss"
    return region.name


def _classify(section: str, secondary, address: Optional[int], layout: MemoryLayout) -> Optional[str]:
    if section.startswith(IGNORED_PREFIXES):
        return None
    name = section.lstrip(".").lower()
    for region in secondary:
        if name in (region, region + "ram") or name.startswith((region + ".", region + "_")):
            return region
    if _matches(section, TEXT_SECTIONS):
        return "text"
    if _matches(section, RODATA_SECTIONS):
        return "rodata"
    if _matches(section, DATA_SECTIONS):
        return "data"
    if _matches(section, BSS_SECTIONS):
        return "bss"
    if address is not None:
        category = _by_address(address, layout)
        if category is not None:
            return category
    # Unrecognised and unplaced: count it as RAM so it cannot hide an overflow.
    return "bss"


def report(build_output: BuildOutput, layout: MemoryLayout) -> ArtifactReport:
    """
    Measures the build output against the planned layout.

    Checks made:
      - 'text' and 'rodata': code and constants, each against its flash region.
      - 'flash': text, rodata and the .data load image, against all of flash.
      - 'data': .data plus .bss, against the 'data' region.
      - 'heap' and 'stack': sections placed there by address.
      - one per secondary RAM region (e.g. 'ccm'), against that region.

    Sections the tables do not name are placed by their address when the
    size tool reported one, and otherwise counted as .bss. Every excess is
    recorded as an ArtifactOverflow and fails the report; nothing is raised
    here so callers see all overflows at once. Use
    `ArtifactReport.raise_for_overflow()` to stop before flashing.
    """
    flash_regions = layout.regions_in("flash")
    secondary = [r.name for r in layout.regions if r.memory != "flash" and r.name not in MAIN_RAM_REGIONS]

    sizes = {"text": 0, "rodata": 0, "data": 0, "bss": 0, "heap": 0, "stack": 0}
    sizes.update({name: 0 for name in secondary})
    for section, size in build_output.sections.items():
        category = _classify(section, secondary, build_output.addresses.get(section), layout)
        if category is not None:
            sizes[category] += size

    flash_image = sizes["text"] + sizes["rodata"] + sizes["data"]
    checks = [
        ("text", sizes["text"], layout.region("text").size),
        ("rodata", sizes["rodata"], layout.region("rodata").size),
        ("flash", flash_image, sum(r.size for r in flash_regions)),
        ("data", sizes["data"] + sizes["bss"], layout.region("data").size),
        ("heap", sizes["heap"], layout.region("heap").size),
        ("stack", sizes["stack"], layout.region("stack").size),
    ]
    checks += [(name, sizes[name], layout.region(name).size) for name in secondary]

    bounds = {name: bound for name, _, bound in checks}
    overflows = tuple(
        ArtifactOverflow(name, measured, bound)
        for name, measured, bound in checks
        if measured > bound
    )

    stem = os.path.splitext(build_output.image_path)[0]
    image = BinaryImage(
        path=stem + ".bin",
        hex_path=stem + ".hex",
        load_address=flash_regions[0].base if flash_regions else 0,
        size=flash_image,
    )
    return ArtifactReport(image=image, sizes=sizes, bounds=bounds, overflows=overflows)
