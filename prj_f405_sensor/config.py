# ==============================================================================
# Project & Target Configuration
# ==============================================================================
# Name of the final output file (e.g., firmware.elf, firmware.bin).
TARGET_NAME = "firmware"

# Directory where build artifacts will be stored.
BUILD_DIR = "build"

# The part number exactly as printed on the chip. Package and temperature
# suffixes are fine; the resolver canonicalizes them away.
CHIP = "STM32F405RGT6"

# ==============================================================================
# Peripherals & Packages
# ==============================================================================
# Peripheral capabilities the firmware uses. Each one pulls in its driver package.
CAPABILITIES = ["GPIO", "I2C", "UART", "ADC"]

# Exact package versions to use instead of the newest compatible ones.
PINS = {}

# Project include directories, relative to this project folder.
INCLUDE_PATHS = ["Core/Inc", "Drivers/BSP"]

# ==============================================================================
# Memory Layout
# ==============================================================================
# Absolute sizes (or {"size": ..., "offset": ...}) for individual regions.
# Everything not listed here is split proportionally.
MEMORY_OVERRIDES = {
    "stack": 0x2000,
    "heap": 0x1000,
}

# ==============================================================================
# Debug Probe
# ==============================================================================
PROBE = "openocd"
ADAPTER = "stlink"
TRANSPORT = "SWD"
