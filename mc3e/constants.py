"""
MC Protocol Constants
====================

MCプロトコルで使用する定数定義
機種ごとのフィールド幅とデバイスコードは表として保持する。
"""

from enum import Enum
from typing import NamedTuple


# フレーム種別（3Eバイナリのみ）
FRAME_3E = "3E"

# サブヘッダ（リトルエンディアンで送信: 50 00 / D0 00）
SUBHEADER_REQUEST = 0x0050
SUBHEADER_RESPONSE = 0x00D0

# 監視タイマ 16 x 250ms = 4秒
MONITORING_TIMER = 0x0010
MONITORING_TIMER_UNIT_SEC = 0.25

# コマンド
CMD_BATCH_READ = 0x0401
CMD_BATCH_WRITE = 0x1401

# 応答フレームのオフセット
RESPONSE_ACCESS_ROUTE_INDEX = 2
RESPONSE_DATA_LENGTH_INDEX = 7
RESPONSE_STATUS_INDEX = 9
RESPONSE_DATA_INDEX = 11

# 終了コード（シミュレータ応答用）
STATUS_OK = 0x0000
STATUS_UNSUPPORTED_COMMAND = 0xC059
STATUS_BAD_REQUEST_DATA = 0xC05C

# ワード値・点数の範囲
WORD_MIN = -0x8000
WORD_MAX = 0x7FFF
COUNT_MIN = 1
COUNT_MAX = 0xFFFF


class PLCModel(str, Enum):
    """PLC機種"""
    Q = "Q"
    IQ_R = "iQ-R"


class ModelLayout(NamedTuple):
    """機種ごとのデバイス指定フィールド構成"""
    subcommand: int
    device_number_width: int
    device_number_max: int
    device_code_width: int


# Qシリーズの3バイト番号フィールドは下位16ビットのみ有効
MODEL_LAYOUTS = {
    PLCModel.Q: ModelLayout(
        subcommand=0x0000,
        device_number_width=3,
        device_number_max=0xFFFF,
        device_code_width=1,
    ),
    PLCModel.IQ_R: ModelLayout(
        subcommand=0x0002,
        device_number_width=4,
        device_number_max=0xFFFFFFFF,
        device_code_width=2,
    ),
}


class DeviceType(Enum):
    """ワードデバイス種別（値 = バイナリデバイスコード）"""
    D = 0xA8
    SD = 0xA9
    R = 0xAF
    TN = 0xC2
    CN = 0xC5

    @property
    def code(self) -> int:
        return self.value


# プレフィックス文字列 → デバイス種別
DEVICE_TYPES = {device.name: device for device in DeviceType}
DEVICE_CODES = {device.value: device for device in DeviceType}
