"""
This file contains the configuration for the toolchain, the package cache and
the generic compiler/linker flags. These settings are specific to the
development environment, not to a project; per-project settings live in each
project's 'prj_*/config.py'.
"""
import os

# ==============================================================================
# Toolchain Configuration
# ==============================================================================
# The prefix for the toolchain executables (e.g., 'arm-none-eabi-').
TOOLCHAIN_PREFIX = "arm-none-eabi-"

# Path to the 'bin' directory of the toolchain. Empty means "use PATH".
TOOLCHAIN_PATH = os.getenv("CHIPMGR_TOOLCHAIN_PATH", "")

# Set to 1 to include debug symbols (-g), 0 for release.
DEBUG_MODE = 1

# ==============================================================================
# Package Cache & Fetching
# ==============================================================================
# Local directory holding fetched packages, keyed by <name>/<version>.
CACHE_DIR = os.getenv("CHIPMGR_CACHE_DIR", os.path.join(os.path.expanduser("~"), ".chipmgr", "packages"))

# Seconds to wait for the package server before giving up with FetchTimeout.
FETCH_TIMEOUT = float(os.getenv("CHIPMGR_FETCH_TIMEOUT", "30"))

# How many times the command line retries a timed-out or unavailable fetch.
FETCH_RETRIES = int(os.getenv("CHIPMGR_FETCH_RETRIES", "0"))

# Archive location for a package. Receives 'repo' and 'version'.
PACKAGE_URL_TEMPLATE = os.getenv(
    "CHIPMGR_PACKAGE_URL",
    "https://github.com/STMicroelectronics/{repo}/archive/refs/tags/v{version}.tar.gz",
)

# ==============================================================================
# Memory Layout
# ==============================================================================
# Every planned region size is rounded down to this many bytes.
REGION_ALIGNMENT = 8

# ==============================================================================
# Generic Compiler & Linker Flags
# ==============================================================================
# Optimization level. -Os for size, -O2 for speed, -O0 for debugging.
OPTIMIZATION = "-Os"

# C Language Standard.
C_STANDARD = "-std=gnu17"

# Common warning flags for both C and C++.
COMMON_WARNING_FLAGS = [
    "-Wall", "-Wextra", "-Wpedantic", "-Wshadow",
]

DEBUG_FLAGS = ["-g", "-gdwarf-2"]

# Flags defining the CPU architecture and ABI, per core.
CPU_FLAGS = {
    "cortex-m0": ["-mcpu=cortex-m0", "-mthumb", "-mfloat-abi=soft"],
    "cortex-m0plus": ["-mcpu=cortex-m0plus", "-mthumb", "-mfloat-abi=soft"],
    "cortex-m3": ["-mcpu=cortex-m3", "-mthumb", "-mfloat-abi=soft"],
    "cortex-m4": ["-mcpu=cortex-m4", "-mthumb", "-mfpu=fpv4-sp-d16", "-mfloat-abi=hard"],
    "cortex-m7": ["-mcpu=cortex-m7", "-mthumb", "-mfpu=fpv5-d16", "-mfloat-abi=hard"],
}

# Standard libraries to link against.
LIBRARIES = ["-lc", "-lm", "-lnosys"]
