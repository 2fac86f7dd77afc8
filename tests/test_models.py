"""
Tests for the value objects and the package catalog.
"""

from chipmgr.errors import ChipConfigError, FetchUnavailable, VersionConflict
from chipmgr.models import BinaryImage, CapabilityRequest, MemoryLayout, MemoryRegion, PackageRef
from chipmgr.packages import CATALOG, _minor_series


class TestCapabilityRequest:
    def test_normalized_and_ordered(self):
        request = CapabilityRequest([" i2c", "GPIO", "I2C", ""])
        assert request.tags == ("I2C", "GPIO")
        assert "gpio" in request
        assert len(request) == 2

    def test_equality_ignores_order(self):
        assert CapabilityRequest(["GPIO", "I2C"]) == CapabilityRequest(["I2C", "GPIO"])
        assert hash(CapabilityRequest(["GPIO", "I2C"])) == hash(CapabilityRequest(["i2c", "gpio"]))


class TestPackageRef:
    def test_identity_is_name_and_version(self):
        assert PackageRef("F4-core", "2.6.10", constraint=">=2.6.9") == PackageRef("F4-core", "2.6.10")
        assert PackageRef("F4-core", "2.6.10") != PackageRef("F4-core", "2.6.9")
        assert str(PackageRef("F4-core", "2.6.10")) == "F4-core==2.6.10"


class TestMemoryRegion:
    def test_overlap(self):
        a = MemoryRegion("a", "main", 0x100, 0x100, False, True)
        b = MemoryRegion("b", "main", 0x1F8, 0x10, False, True)
        c = MemoryRegion("c", "main", 0x200, 0x10, False, True)
        empty = MemoryRegion("e", "main", 0x150, 0, False, True)
        assert a.overlaps(b)
        assert not a.overlaps(c)
        assert not a.overlaps(empty)

    def test_region_at(self):
        a = MemoryRegion("a", "main", 0x100, 0x100, False, True)
        b = MemoryRegion("b", "main", 0x200, 0x10, False, True)
        layout = MemoryLayout((a, b))
        assert a.contains(0x1FF)
        assert not a.contains(0x200)
        assert layout.region_at(0x200) is b
        assert layout.region_at(0x300) is None


class TestBinaryImage:
    def test_objcopy_commands(self):
        image = BinaryImage("fw.bin", "fw.hex", 0x08000000, 1024)
        assert image.objcopy_commands("fw.elf", "arm-none-eabi-") == [
            ["arm-none-eabi-objcopy", "-O", "ihex", "fw.elf", "fw.hex"],
            ["arm-none-eabi-objcopy", "-O", "binary", "-S", "fw.elf", "fw.bin"],
        ]


class TestErrors:
    def test_only_fetch_errors_are_retryable(self):
        assert FetchUnavailable("F4-core==2.6.10", "HTTP 503").retryable
        assert not VersionConflict("F4-core", "==2.6.10", "<2.6.9", "F4-base-driver 1.7.13").retryable
        assert issubclass(FetchUnavailable, ChipConfigError)


class TestCatalog:
    def test_minor_series(self):
        assert _minor_series("1.8.3") == ">=1.8.0,<1.9"
        assert _minor_series("1.11.2") == ">=1.11.0,<1.12"

    def test_f4_catalog(self):
        f4 = CATALOG["F4"]
        assert f4.core == "F4-core"
        assert f4.capabilities["GPIO"] == "F4-base-driver"
        assert f4.capabilities["I2C"] == "F4-I2C-driver"
        assert f4.packages["F4-base-driver"].versions["1.7.13"] == {"F4-core": ">=2.6.0,<2.6.9"}
        assert f4.packages["F4-I2C-driver"].versions["1.8.2"] == {"F4-base-driver": ">=1.8.0,<1.9"}

    def test_every_family_has_core_and_base(self):
        for family, catalog in CATALOG.items():
            assert catalog.core in catalog.packages, family
            assert catalog.base in catalog.packages, family
