"""
Error taxonomy for chip resolution.

Every failure carries the identifiers needed to act on it as attributes, so
callers never have to parse the message. Only fetch failures are worth
retrying; everything else is deterministic for a given input.
"""


class ChipConfigError(Exception):
    """Base class for all resolution errors."""

    retryable = False


class UnknownChip(ChipConfigError):
    def __init__(self, identifier, reason="no registry entry"):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Unknown chip '{identifier}': {reason}")


class AmbiguousChip(ChipConfigError):
    def __init__(self, identifier, candidates):
        self.identifier = identifier
        self.candidates = tuple(candidates)
        super().__init__(
            f"Ambiguous chip '{identifier}': could be any of {', '.join(self.candidates)}"
        )


class UnsupportedCapability(ChipConfigError):
    def __init__(self, capability, target):
        self.capability = capability
        self.target = target
        super().__init__(f"Capability '{capability}' is not available for '{target}'")


class VersionConflict(ChipConfigError):
    """
    Raised when a package cannot satisfy two constraints at once.

    Attributes:
        package (str): The package both constraints apply to.
        pinned (str): The first constraint, usually the caller's explicit pin.
        constraint (str): The second constraint, required by `required_by`.
        required_by (str): The package (and version) imposing `constraint`.
    """

    def __init__(self, package, pinned, constraint, required_by):
        self.package = package
        self.pinned = pinned
        self.constraint = constraint
        self.required_by = required_by
        super().__init__(
            f"Version conflict on '{package}': '{pinned}' does not satisfy "
            f"'{constraint}' required by {required_by}"
        )


class UnknownPackage(ChipConfigError):
    def __init__(self, package, family):
        self.package = package
        self.family = family
        super().__init__(f"Package '{package}' is not part of the {family} resolution")


class LayoutOverflow(ChipConfigError):
    def __init__(self, memory, requested, available):
        self.memory = memory
        self.requested = requested
        self.available = available
        super().__init__(
            f"Layout overflows '{memory}': {requested} bytes requested, {available} available"
        )


class RegionOverlap(ChipConfigError):
    def __init__(self, first, second):
        self.first = first
        self.second = second
        super().__init__(f"Memory regions '{first}' and '{second}' overlap")


class InvalidOverride(ChipConfigError):
    def __init__(self, region, reason):
        self.region = region
        self.reason = reason
        super().__init__(f"Invalid memory override for '{region}': {reason}")


class InvalidSetting(ChipConfigError, ValueError):
    """A project setting names something that does not exist (probe kind, adapter, pin, ...)."""

    def __init__(self, setting, value, reason):
        self.setting = setting
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {setting} '{value}': {reason}")


class UnsupportedTransport(ChipConfigError):
    def __init__(self, transport, chip, supported):
        self.transport = transport
        self.chip = chip
        self.supported = tuple(supported)
        super().__init__(
            f"Transport '{transport}' is not available on {chip} "
            f"(supported: {', '.join(self.supported)})"
        )


class ArtifactOverflow(ChipConfigError):
    def __init__(self, region, measured, bound):
        self.region = region
        self.measured = measured
        self.bound = bound
        self.overshoot = measured - bound
        super().__init__(
            f"Region '{region}' overflows by {self.overshoot} bytes "
            f"({measured} used, {bound} available)"
        )


class FetchError(ChipConfigError):
    """Base class for package retrieval failures. Safe to retry."""

    retryable = True

    def __init__(self, package, message):
        self.package = package
        super().__init__(message)


class FetchTimeout(FetchError):
    def __init__(self, package, timeout):
        self.timeout = timeout
        super().__init__(package, f"Fetching '{package}' timed out after {timeout}s")


class FetchUnavailable(FetchError):
    def __init__(self, package, reason):
        self.reason = reason
        super().__init__(package, f"Could not fetch '{package}': {reason}")
