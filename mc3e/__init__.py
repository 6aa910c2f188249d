"""
MC Protocol 3E Client
=====================

MCプロトコル（3Eフレーム・バイナリ）のワードデバイス読み書きライブラリ

主要コンポーネント:
- ProtocolClient: 読み書きの公開API（asyncio）
- RequestScheduler: 要求の直列化と応答の対応付け
- codec: 電文の組み立てと応答解析
- parse_device: デバイス指定文字列の解析
- errors: エラー定義

Version: 1.0.0
"""

__version__ = '1.0.0'

from .client import ProtocolClient
from .config import PLCConnectionConfig
from .constants import DeviceType, PLCModel
from .device import DeviceAddress, parse_device
from .errors import (
    AddressError,
    MalformedAddressError,
    MalformedFrameError,
    MCError,
    MCProtocolError,
    ProtocolStatusError,
    TimeoutError,
    TransportError,
    UnsupportedDeviceError,
    UnsupportedModelError,
    ValueOutOfRangeError,
)
from .options import ConnectionOptions

__all__ = [
    'ProtocolClient', 'PLCConnectionConfig', 'ConnectionOptions', 'DeviceAddress',
    'DeviceType', 'PLCModel', 'parse_device', 'AddressError', 'MalformedAddressError',
    'MalformedFrameError', 'MCError', 'MCProtocolError', 'ProtocolStatusError',
    'TimeoutError', 'TransportError', 'UnsupportedDeviceError', 'UnsupportedModelError',
    'ValueOutOfRangeError',
]
