# ==============================================================================
# Project & Target Configuration
# ==============================================================================
TARGET_NAME = "camera"
BUILD_DIR = "build"
CHIP = "STM32H743ZIT6"

# ==============================================================================
# Peripherals & Packages
# ==============================================================================
CAPABILITIES = ["GPIO", "DCMI", "SDMMC", "UART", "DMA"]

# Hold the HAL at the release the camera pipeline was validated against.
PINS = {"H7-base-driver": "1.11.2"}

INCLUDE_PATHS = ["Core/Inc"]

# ==============================================================================
# Memory Layout
# ==============================================================================
# Frame buffers live in the D2 SRAM; keep the AXI SRAM for code data.
MEMORY_OVERRIDES = {
    "stack": 0x4000,
}

# ==============================================================================
# Debug Probe
# ==============================================================================
PROBE = "jlink"
TRANSPORT = "SWD"
