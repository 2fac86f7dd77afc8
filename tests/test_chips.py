"""
Tests for the chip registry and part number canonicalization.
"""

import pytest

from chipmgr.chips import CHIPS, ChipRegistry, canonicalize
from chipmgr.errors import AmbiguousChip, UnknownChip


class TestCanonicalize:
    """Part numbers collapse onto STM32<subfamily>x<flash>"""

    @pytest.mark.parametrize("part", [
        "STM32F405RGT6", "STM32F405VGT6", "STM32F405ZGT7TR", "stm32f405rg",
        "  STM32F405 RG T6 ", "F405RGT6", "STM32F405xG",
    ])
    def test_suffix_variants_share_identifier(self, part):
        assert canonicalize(part).name == "STM32F405xG"

    def test_canonical_form_is_a_fixed_point(self):
        chip_id = canonicalize("STM32F429ZIT6")
        assert canonicalize(chip_id.name).name == chip_id.name == "STM32F429xI"

    def test_pin_code_is_kept_but_not_in_name(self):
        chip_id = canonicalize("STM32F103C8T6")
        assert chip_id.subfamily == "F103"
        assert chip_id.flash_code == "8"
        assert chip_id.pin_code == "C"

    def test_single_flash_size_needs_no_flash_code(self):
        chips = {"F405": dict(CHIPS["F405"], flash=["G"])}
        assert canonicalize("STM32F405", chips).name == "STM32F405xG"

    def test_missing_flash_code_is_ambiguous(self):
        with pytest.raises(AmbiguousChip) as excinfo:
            canonicalize("STM32F405")
        assert excinfo.value.candidates == ("STM32F405xE", "STM32F405xG")

    def test_family_prefix_is_ambiguous(self):
        with pytest.raises(AmbiguousChip) as excinfo:
            canonicalize("STM32F4")
        assert "STM32F405" in excinfo.value.candidates
        assert "STM32F429" in excinfo.value.candidates

    def test_incomplete_unique_prefix_suggests(self):
        with pytest.raises(UnknownChip) as excinfo:
            canonicalize("STM32H74")
        assert "STM32H743" in excinfo.value.reason

    def test_unknown_subfamily(self):
        with pytest.raises(UnknownChip) as excinfo:
            canonicalize("STM32U575ZIT6")
        assert excinfo.value.identifier == "STM32U575ZIT6"

    def test_invalid_flash_code(self):
        with pytest.raises(UnknownChip, match="no flash size code 'B'"):
            canonicalize("STM32F405RBT6")

    def test_invalid_pin_code(self):
        with pytest.raises(UnknownChip, match="pin count code"):
            canonicalize("STM32F405WGT6")

    def test_not_a_part_number(self):
        with pytest.raises(UnknownChip):
            canonicalize("ATmega328P-PU")

    def test_trailing_junk_is_rejected(self):
        with pytest.raises(UnknownChip, match="unexpected characters 'T6ABCDE'"):
            canonicalize("STM32F405RGT6ABCDE")

    def test_tape_and_reel_suffix_is_accepted(self):
        assert canonicalize("STM32F405RGT6TR").name == "STM32F405xG"


class TestNestedSubfamilies:
    """A registry key that is a prefix of another key"""

    @pytest.fixture
    def chips(self):
        return {
            "F40": dict(CHIPS["F405"], flash=["E"]),
            "F405": dict(CHIPS["F405"], flash=["E", "G"]),
        }

    def test_longer_key_wins_when_shorter_does_not_parse(self, chips):
        chip_id = canonicalize("STM32F405RGT6", chips)
        assert chip_id.subfamily == "F405"
        assert chip_id.name == "STM32F405xG"

    def test_shorter_key_still_matches(self, chips):
        assert canonicalize("STM32F40RE", chips).name == "STM32F40xE"

    def test_both_keys_parse(self):
        chips = {
            "L4": dict(CHIPS["F405"], flash=["C"]),
            "L4R": dict(CHIPS["F405"], flash=["G"]),
        }
        with pytest.raises(AmbiguousChip) as excinfo:
            canonicalize("STM32L4RCG", chips)
        assert set(excinfo.value.candidates) == {"STM32L4xC", "STM32L4RxG"}

    def test_error_names_the_longest_key(self, chips):
        with pytest.raises(UnknownChip, match="STM32F405 has no flash size code 'B'"):
            canonicalize("STM32F405RBT6", chips)


class TestRegistryLookup:
    """ChipDescriptor contents"""

    def test_f405_descriptor(self, registry):
        chip = registry.lookup("STM32F405RGT6")
        assert chip.identifier == "STM32F405xG"
        assert chip.family == "F4"
        assert chip.core == "cortex-m4"
        assert chip.device_macro == "STM32F405xx"
        assert chip.flash_size == 1048576
        assert chip.flash_base == 0x08000000
        assert chip.main_ram.size == 131072
        assert chip.bank("ccm").size == 65536
        assert chip.bank("ccm").base == 0x10000000
        assert chip.ram_size == 131072 + 65536

    def test_ram_banks_are_not_folded(self, registry):
        chip = registry.lookup("STM32H743ZIT6")
        assert [bank.name for bank in chip.ram] == ["main", "dtcm", "itcm", "sram_d2"]

    def test_suffixes_share_device_macro(self, registry):
        macros = {registry.lookup(part).device_macro
                  for part in ("STM32F405RGT6", "STM32F405VGT6", "STM32F405OEY6", "STM32F405ZET6")}
        assert macros == {"STM32F405xx"}

    def test_density_dependent_macro(self, registry):
        assert registry.lookup("STM32F103C8T6").device_macro == "STM32F103xB"
        assert registry.lookup("STM32F103RET6").device_macro == "STM32F103xE"
        assert registry.lookup("STM32F103RET6").main_ram.size == 64 * 1024

    def test_sysclk_override(self, registry):
        assert registry.lookup("STM32F411CEU6").clock.sysclk_max_hz == 100_000_000
        assert registry.lookup("STM32F405RGT6").clock.sysclk_max_hz == 168_000_000

    def test_identifiers_and_contains(self, registry):
        identifiers = registry.identifiers()
        assert "STM32F405xG" in identifiers
        assert "STM32H743xI" in identifiers
        assert "STM32F405RGT6" in registry
        assert "STM32F4" not in registry
        assert "STM32U575" not in registry

    def test_unregistered_family(self):
        registry = ChipRegistry(chips={"F405": CHIPS["F405"]}, families={})
        with pytest.raises(UnknownChip, match="family 'F4'"):
            registry.lookup("STM32F405RG")

    def test_lookups_return_equal_descriptors(self, registry):
        assert registry.lookup("STM32F405RGT6") == registry.lookup("stm32f405vg")
