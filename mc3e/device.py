"""
Device Address
==============

デバイス指定文字列（"D0", "D1000" 等）の解析
"""

import logging
import re

from pydantic import BaseModel, ConfigDict

from .constants import DEVICE_TYPES, DeviceType
from .errors import MalformedAddressError, UnsupportedDeviceError

logger = logging.getLogger(__name__)

_DEVICE_PATTERN = re.compile(r"([A-Za-z]+)(.*)", re.DOTALL)
_DIGITS_PATTERN = re.compile(r"[0-9]+")


class DeviceAddress(BaseModel):
    """解析済みデバイスアドレス"""

    model_config = ConfigDict(frozen=True)

    device_type: DeviceType
    number: int

    def __str__(self) -> str:
        return f"{self.device_type.name}{self.number}"


def parse_device(text: str) -> DeviceAddress:
    """
    デバイス指定文字列を解析

    Args:
        text: "D100" 等（プレフィックス + 10進数）

    Returns:
        DeviceAddress

    Raises:
        UnsupportedDeviceError: 未対応のデバイス種別
        MalformedAddressError: デバイス番号がない・10進数でない
    """
    match = _DEVICE_PATTERN.fullmatch(text)
    if not match:
        raise MalformedAddressError(text)

    prefix = match.group(1).upper()
    number_str = match.group(2)

    device_type = DEVICE_TYPES.get(prefix)
    if device_type is None:
        raise UnsupportedDeviceError(text, prefix)
    if not _DIGITS_PATTERN.fullmatch(number_str):
        raise MalformedAddressError(text)

    try:
        number = int(number_str, 10)
    except ValueError:
        # 桁数が int 変換の上限を超える
        raise MalformedAddressError(text) from None

    address = DeviceAddress(device_type=device_type, number=number)
    logger.debug(f"デバイス解析成功: '{text}' -> {address} (0x{address.number:X})")
    return address


def get_supported_devices():
    """対応デバイス種別のプレフィックス一覧"""
    return list(DEVICE_TYPES)
