"""
Chip-aware build configuration resolver for STM32 projects.

Main workflow:
    1. Look up the chip (chips.py)
    2. Resolve driver/core packages (resolver.py)
    3. Plan the memory layout (layout.py)
    4. Generate the build descriptor (descriptor.py)
    5. Synthesize the debug launch descriptor (debug.py)
    6. Check the built image against the layout (report.py)
"""

from .chips import ChipRegistry, canonicalize, default_registry
from .debug import synthesize
from .descriptor import generate
from .layout import plan
from .models import CapabilityRequest, ChipDescriptor, PackageRef
from .resolver import DependencyResolver

__all__ = [
    'ChipRegistry', 'canonicalize', 'default_registry', 'synthesize', 'generate',
    'plan', 'CapabilityRequest', 'ChipDescriptor', 'PackageRef',
    'DependencyResolver',
]
