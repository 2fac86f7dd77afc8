"""
Dependency resolution: which driver and core packages a project needs, at
which versions, and where to fetch them from.
"""
from typing import Dict, List, Optional, Tuple

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

from . import config
from .errors import FetchError, InvalidSetting, UnknownPackage, UnsupportedCapability, VersionConflict
from .models import CapabilityRequest, PackageRef
from .packages import CATALOG


def _dependency_order(names, packages):
    """Orders `names` so that every package comes after the packages it requires."""
    ordered = []
    visiting = set()

    def visit(name):
        if name in ordered or name in visiting:
            return
        visiting.add(name)
        requires = sorted({dep for reqs in packages[name].versions.values() for dep in reqs})
        for dep in requires:
            if dep in names:
                visit(dep)
        visiting.discard(name)
        ordered.append(name)

    for name in names:
        visit(name)
    return ordered


def _parse_pin(name: str, pin: str) -> str:
    """Pins are exact versions, with or without a leading '=='."""
    text = pin.strip()
    version = text[2:].strip() if text.startswith("==") else text
    try:
        Version(version)
    except InvalidVersion:
        raise InvalidSetting(f"pin for {name}", pin, "pins must be exact versions such as '1.8.2'") from None
    return version


class DependencyResolver:
    """
    Resolves (family, CapabilityRequest) to an ordered tuple of PackageRefs.

    Output order is: the family's core package, its base driver, then one
    driver per requested capability in request order. Capabilities served by
    the base driver (e.g. GPIO) add nothing. Each package gets the newest
    version compatible with every other selected package and with the
    caller's pins.
    """

    def __init__(self, catalog=None, cache=None, url_template=None):
        self.catalog = CATALOG if catalog is None else catalog
        self.cache = cache
        self.url_template = url_template or config.PACKAGE_URL_TEMPLATE

    def package_names(self, family: str, request: CapabilityRequest) -> List[str]:
        """Returns the package names a request needs, in output order."""
        family_catalog = self.catalog.get(family)
        if family_catalog is None:
            first = next(iter(request), "core support")
            raise UnsupportedCapability(first, f"family {family}")

        names = [family_catalog.core, family_catalog.base]
        for tag in request:
            package = family_catalog.capabilities.get(tag)
            if package is None:
                raise UnsupportedCapability(tag, f"family {family}")
            if package not in names:
                names.append(package)
        return names

    def resolve(self, family: str, request, pins: Optional[Dict[str, str]] = None) -> Tuple[PackageRef, ...]:
        """
        Args:
            family (str): Family tag, e.g. "F4".
            request (CapabilityRequest | iterable of str): Requested capabilities.
            pins (dict, optional): {package_name: exact version} overrides.

        Returns:
            tuple: PackageRefs in deterministic order.

        Raises:
            UnsupportedCapability: A tag has no package for this family.
            UnknownPackage: A pin names a package outside this resolution.
            VersionConflict: No combination of versions satisfies the pins.
            InvalidSetting: A pin is not an exact version.
        """
        if not isinstance(request, CapabilityRequest):
            request = CapabilityRequest(request)
        names = self.package_names(family, request)
        packages = self.catalog[family].packages

        pins = {name: _parse_pin(name, version) for name, version in (pins or {}).items()}
        for name, version in pins.items():
            if name not in names:
                raise UnknownPackage(name, family)
            known = packages[name].versions
            if version not in known:
                raise VersionConflict(
                    package=name,
                    pinned=f"=={version}",
                    constraint="one of " + ", ".join(sorted(known, key=Version)),
                    required_by="the package catalog",
                )

        chosen: Dict[str, str] = {}
        conflicts: List[Tuple[VersionConflict, int]] = []
        order = _dependency_order(names, packages)
        if not self._search(order, 0, chosen, pins, packages, conflicts):
            # Report the clash closest to the caller's pins: pin against pin first,
            # then a pinned requirement, then a pinned requirer.
            raise max(conflicts, key=lambda item: item[1])[0]

        return tuple(self._make_ref(name, chosen, pins, packages) for name in names)

    def _candidates(self, spec, pin):
        if pin is not None:
            return [pin]
        return sorted(spec.versions, key=Version, reverse=True)

    def _search(self, order, index, chosen, pins, packages, conflicts) -> bool:
        if index == len(order):
            return True
        name = order[index]
        spec = packages[name]
        for version in self._candidates(spec, pins.get(name)):
            conflict = self._conflict(name, version, spec, chosen, pins)
            if conflict is not None:
                conflicts.append(conflict)
                continue
            chosen[name] = version
            if self._search(order, index + 1, chosen, pins, packages, conflicts):
                return True
            del chosen[name]
        return False

    @staticmethod
    def _conflict(name, version, spec, chosen, pins):
        for dep, specifier in spec.versions[version].items():
            if dep not in chosen or Version(chosen[dep]) in SpecifierSet(specifier):
                continue
            weight = 2 * (dep in pins) + (name in pins)
            if dep in pins:
                error = VersionConflict(dep, f"=={chosen[dep]}", specifier, f"{name} {version}")
            else:
                error = VersionConflict(dep, chosen[dep], specifier, f"{name} {version}")
            return error, weight
        return None

    def _make_ref(self, name, chosen, pins, packages) -> PackageRef:
        version = chosen[name]
        if name in pins:
            constraint = f"=={version}"
        else:
            required = [
                packages[other].versions[chosen[other]][name]
                for other in sorted(chosen)
                if name in packages[other].versions[chosen[other]]
            ]
            constraint = str(SpecifierSet(",".join(required))) if required else ""
        source = self.url_template.format(repo=packages[name].repo, version=version)
        return PackageRef(name=name, version=version, constraint=constraint, source=source)

    def fetch(self, refs, retries: int = 0):
        """
        Fetches every package through the cache.

        Only FetchTimeout/FetchUnavailable are retried, and only `retries`
        times; the caller decides whether retrying is worthwhile.

        Returns:
            dict: {PackageRef: Path} of the cached package directories.
        """
        if self.cache is None:
            raise RuntimeError("DependencyResolver has no package cache to fetch into")
        paths = {}
        for ref in refs:
            attempt = 0
            while True:
                try:
                    paths[ref] = self.cache.fetch(ref)
                    break
                except FetchError as e:
                    if attempt >= retries:
                        raise
                    attempt += 1
                    print(f"⚠️  {e} (retry {attempt}/{retries})")
        return paths
