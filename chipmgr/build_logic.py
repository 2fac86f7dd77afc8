import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Tuple

from . import config as toolchain_config
from .chips import default_registry
from .debug import synthesize
from .descriptor import generate
from .errors import UnsupportedCapability
from .fetch import PackageCache
from .layout import plan
from .models import (BuildDescriptor, CapabilityRequest, ChipDescriptor, DebugLaunchDescriptor,
                     MemoryLayout, PackageRef)
from .report import read_sections, report
from .resolver import DependencyResolver


@dataclass(frozen=True)
class ResolvedTarget:
    """Everything resolved for one project, ready to hand to the build and debug backends."""
    project: str
    chip: ChipDescriptor
    packages: Tuple[PackageRef, ...]
    layout: MemoryLayout
    build: BuildDescriptor
    debug: DebugLaunchDescriptor

    def to_dict(self) -> Dict[str, object]:
        return {
            "project": self.project,
            "chip": {
                "identifier": self.chip.identifier,
                "family": self.chip.family,
                "core": self.chip.core,
                "device_macro": self.chip.device_macro,
                "flash_size": self.chip.flash_size,
                "ram": {bank.name: bank.size for bank in self.chip.ram},
            },
            "packages": [
                {"name": ref.name, "version": ref.version, "constraint": ref.constraint, "source": ref.source}
                for ref in self.packages
            ],
            "layout": [
                {"name": r.name, "memory": r.memory, "base": f"0x{r.base:08X}", "size": r.size}
                for r in self.layout.regions
            ],
            "build": self.build.to_dict(),
            "debug": self.debug.to_dict(),
        }


class TargetResolver:
    """
    Runs the full resolution for one project: chip lookup, package resolution,
    memory planning, build descriptor and debug descriptor.
    Receives the project's configuration module the same way the build
    manager does, so every 'prj_*/config.py' drives one target.
    """

    def __init__(self, config_module, project_name, registry=None, resolver=None):
        """Initializes the resolver for one project and its build directory."""
        self.config = config_module
        self.project_name = project_name
        self.registry = registry or default_registry()
        self.resolver = resolver or DependencyResolver(cache=PackageCache())
        # Create a project-specific build directory, e.g., 'build/prj_f405_sensor'
        self.build_dir = os.path.join(getattr(self.config, "BUILD_DIR", "build"), self.project_name)

    def _setting(self, name, default=None):
        return getattr(self.config, name, default)

    def lookup_chip(self) -> ChipDescriptor:
        print(f"🔎 Looking up chip '{self.config.CHIP}'...")
        chip = self.registry.lookup(self.config.CHIP)
        print(f"  - {chip.identifier}: family {chip.family}, {chip.core}, macro {chip.device_macro}")
        return chip

    def resolve(self) -> ResolvedTarget:
        """Resolves the project's chip, packages, layout and descriptors."""
        chip = self.lookup_chip()

        request = CapabilityRequest(self._setting("CAPABILITIES", []))
        for tag in request:
            if tag not in chip.capabilities:
                raise UnsupportedCapability(tag, chip.identifier)

        print("📦 Resolving packages...")
        packages = self.resolver.resolve(chip.family, request, self._setting("PINS", {}))
        for ref in packages:
            print(f"  - {ref}")

        print("🗺️  Planning memory layout...")
        layout = plan(chip, self._setting("MEMORY_OVERRIDES", {}))
        for region in layout.regions:
            print(f"  - {region.name:<8} 0x{region.base:08X}  {region.size:>8} bytes")

        print("⚙️  Generating build descriptor...")
        # Prepend the project directory to the project's relative include paths.
        project_includes = [os.path.join(self.project_name, p) for p in self._setting("INCLUDE_PATHS", [])]
        cache = self.resolver.cache
        build = generate(
            chip, packages, layout,
            project_includes=project_includes,
            package_root=str(cache.root) if cache is not None else None,
        )

        print("🐞 Synthesizing debug configuration...")
        debug = synthesize(
            chip,
            self._setting("PROBE", "openocd"),
            self._setting("TRANSPORT", "SWD"),
            self._setting("ADAPTER", "stlink"),
        )

        print(f"\n✅ Resolution of {self.project_name} complete.")
        return ResolvedTarget(self.project_name, chip, packages, layout, build, debug)

    def fetch_packages(self, target: ResolvedTarget, retries: int = 0):
        """Fetches the target's packages into the cache; returns {PackageRef: Path}."""
        print(f"📥 Fetching {len(target.packages)} packages...")
        return self.resolver.fetch(target.packages, retries=retries)

    def elf_path(self) -> str:
        return os.path.join(self.build_dir, f"{self._setting('TARGET_NAME', 'firmware')}.elf")

    def report(self, target: ResolvedTarget, elf_path=None, size_tool=None):
        """
        Measures an already-built image against the target's layout.

        The image is produced by the external toolchain; this only reads its
        section table and checks it before anything gets flashed.
        """
        elf_path = elf_path or self.elf_path()
        print("📊 Calculating size...")
        artifact = report(read_sections(elf_path, size_tool), target.layout)
        for name, size in artifact.sizes.items():
            bound = artifact.bounds.get(name)
            suffix = f" / {bound}" if bound is not None else ""
            print(f"  - {name:<6} {size:>8}{suffix}")
        if artifact.passed:
            print(f"✅ {elf_path} fits the planned layout. Image commands:")
            for command in artifact.image.objcopy_commands(elf_path, toolchain_config.TOOLCHAIN_PREFIX):
                print(f"    $ {' '.join(command)}")
        else:
            for overflow in artifact.overflows:
                print(f"❌ {overflow}")
        return artifact


def resolve_targets(projects, registry=None, resolver=None, max_workers=4, fetch=False, retries=0):
    """
    Resolves several projects concurrently.

    Only the read-only registry and the resolver's package cache are shared;
    every run builds its own descriptors.

    Args:
        projects: Iterable of (config_module, project_name) pairs.
        fetch (bool): Also fetch each target's packages.
        retries (int): Retries for failed fetches.

    Returns:
        dict: {project_name: ResolvedTarget}, in input order.
    """
    registry = registry or default_registry()
    resolver = resolver or DependencyResolver(cache=PackageCache())
    runners = [TargetResolver(module, name, registry, resolver) for module, name in projects]

    def run(runner):
        target = runner.resolve()
        if fetch:
            runner.fetch_packages(target, retries=retries)
        return target

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        targets = list(pool.map(run, runners))
    return {target.project: target for target in targets}
