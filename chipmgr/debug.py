"""
Debug launch configuration.

Only the ChipDescriptor is consulted here; debug tooling stays independent
of package resolution and build descriptor generation.
"""
from .errors import InvalidSetting, UnsupportedTransport
from .models import ChipDescriptor, DebugLaunchDescriptor, ProbeKind, Transport

# OpenOCD interface scripts, keyed by the physical adapter on the bench.
OPENOCD_INTERFACES = {
    "stlink": "interface/stlink.cfg",
    "jlink": "interface/jlink.cfg",
    "cmsis-dap": "interface/cmsis-dap.cfg",
    "ftdi": "interface/ftdi/olimex-arm-usb-ocd-h.cfg",
}

SERVER_TYPES = {
    ProbeKind.OPENOCD: "openocd",
    ProbeKind.JLINK: "jlink",
    ProbeKind.STLINK: "stlink",
}


def _coerce(enum_type, value):
    if isinstance(value, enum_type):
        return value
    text = str(value).strip()
    for member in enum_type:
        if member.value.lower() == text.lower() or member.name.lower() == text.lower():
            return member
    expected = ", ".join(member.value for member in enum_type)
    raise InvalidSetting(enum_type.__name__, value, f"expected one of {expected}")


def synthesize(chip: ChipDescriptor, probe_kind, transport, adapter: str = "stlink") -> DebugLaunchDescriptor:
    """
    Maps a probe and transport selection onto a launch descriptor for `chip`.

    Args:
        chip (ChipDescriptor): The target chip.
        probe_kind (ProbeKind | str): "openocd", "jlink" or "stlink".
        transport (Transport | str): "SWD" or "JTAG".
        adapter (str): The physical adapter, used only for OpenOCD to pick
            the interface script.

    Returns:
        DebugLaunchDescriptor: For OpenOCD, `config_files` holds the interface
        script followed by the family's target script. Vendor-direct probes
        get no config files.

    Raises:
        UnsupportedTransport: The chip does not expose the requested transport.
        InvalidSetting: Unknown probe kind, transport or adapter.
    """
    probe_kind = _coerce(ProbeKind, probe_kind)
    transport = _coerce(Transport, transport)

    if transport.value not in chip.transports:
        raise UnsupportedTransport(transport.value, chip.identifier, chip.transports)

    config_files = ()
    if probe_kind is ProbeKind.OPENOCD:
        interface = OPENOCD_INTERFACES.get(adapter)
        if interface is None:
            raise InvalidSetting("debug adapter", adapter, f"expected one of {', '.join(OPENOCD_INTERFACES)}")
        if not chip.openocd_target:
            raise InvalidSetting("probe", probe_kind.value, f"no OpenOCD target script is registered for {chip.identifier}")
        config_files = (interface, chip.openocd_target)
    else:
        adapter = None

    return DebugLaunchDescriptor(
        probe=probe_kind,
        transport=transport,
        chip=chip.identifier,
        server_type=SERVER_TYPES[probe_kind],
        svd_file=chip.svd_file,
        config_files=config_files,
        adapter=adapter,
    )
