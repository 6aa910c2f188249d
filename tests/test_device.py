"""Tests for device address parsing."""

import pytest

from mc3e.constants import DeviceType
from mc3e.device import DeviceAddress, get_supported_devices, parse_device
from mc3e.errors import AddressError, MalformedAddressError, UnsupportedDeviceError


@pytest.mark.parametrize("number", [0, 1, 1000, 0xFFFF, 0xFFFFFFFF])
def test_parse_roundtrip(number):
    address = parse_device(f"D{number}")
    assert address.device_type is DeviceType.D
    assert address.number == number
    assert str(address) == f"D{number}"


def test_parse_lowercase_prefix():
    assert parse_device("d10") == DeviceAddress(device_type=DeviceType.D, number=10)


def test_parse_two_letter_prefix():
    address = parse_device("SD5")
    assert address.device_type is DeviceType.SD
    assert address.device_type.code == 0xA9


def test_parse_leading_zeros():
    assert parse_device("D007").number == 7


def test_unsupported_device():
    with pytest.raises(UnsupportedDeviceError) as exc_info:
        parse_device("A7")
    assert exc_info.value.devicename == "A"


def test_bit_device_is_unsupported():
    with pytest.raises(UnsupportedDeviceError):
        parse_device("M100")


@pytest.mark.parametrize("text", ["", "D", "7", "D1A", "D-1", "D 1", "D1\n", "D１"])
def test_malformed_address(text):
    with pytest.raises(MalformedAddressError):
        parse_device(text)


def test_address_errors_are_value_errors():
    with pytest.raises(ValueError):
        parse_device("D")
    assert issubclass(UnsupportedDeviceError, AddressError)


def test_supported_devices():
    assert "D" in get_supported_devices()


def test_oversized_number_is_malformed():
    with pytest.raises(MalformedAddressError):
        parse_device("D" + "9" * 5000)
