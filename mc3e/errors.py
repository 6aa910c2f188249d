"""
MC Protocol Error Handling
=========================

MCプロトコル通信のエラー処理

エンコード時のエラー（アドレス・範囲・機種）は送信前に検出され、
それ以外のエラーは実行中の要求を失敗させてスケジューラを解放する。
"""

import builtins
from typing import Optional


class MCError(Exception):
    """MCプロトコルクライアントの基本エラークラス"""


class AddressError(MCError, ValueError):
    """デバイスアドレス解析エラー"""

    def __init__(self, text: str, message: str):
        self.text = text
        super().__init__(message)


class MalformedAddressError(AddressError):
    """デバイスアドレス書式エラー（番号なし・数字以外）"""

    def __init__(self, text: str):
        super().__init__(text, f"Malformed device address: {text!r}")


class UnsupportedDeviceError(AddressError):
    """未対応デバイスエラー"""

    def __init__(self, text: str, devicename: str):
        self.devicename = devicename
        super().__init__(
            text, f"Device '{devicename}' is not supported (address {text!r})"
        )


class UnsupportedModelError(MCError):
    """PLCタイプエラー"""

    def __init__(self, plctype):
        self.plctype = plctype
        super().__init__(f'PLC model must be "Q" or "iQ-R" (got {plctype!r})')


class ValueOutOfRangeError(MCError, ValueError):
    """値がワイヤフィールド幅で表現できない"""

    def __init__(self, field: str, value: int, minimum: int, maximum: int):
        self.field = field
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"{field} must be {minimum} <= {field} <= {maximum} (got {value})"
        )


class MalformedFrameError(MCError):
    """応答フレームが短すぎる・壊れている"""

    def __init__(self, data: bytes, reason: str):
        self.data = data
        super().__init__(f"Malformed response frame ({reason}): {data.hex()}")


class ProtocolStatusError(MCError):
    """PLCが非ゼロの終了コードを返した"""

    def __init__(self, errorcode: int, description: Optional[str] = None):
        self.errorcode = errorcode
        self.errorcode_hex = f"0x{errorcode:X}"
        self.description = description
        message = f"MC protocol error: {self.errorcode_hex} ({errorcode:04X}H)"
        if description:
            message += f" ({description})"
        super().__init__(message)


# 旧名との互換
MCProtocolError = ProtocolStatusError


class TimeoutError(MCError, builtins.TimeoutError):
    """通信タイムアウトエラー"""

    def __init__(self, timeout_sec: float):
        self.timeout_sec = timeout_sec
        super().__init__(f"Communication timeout after {timeout_sec} seconds")


class TransportError(MCError):
    """PLC接続エラー（下位層のI/Oエラーをラップ）"""

    def __init__(self, message: str):
        super().__init__(f"PLC connection error: {message}")


# よく発生するエラーコード
ERROR_DESCRIPTIONS = {
    0xC050: "PLC内部エラー",
    0xC051: "PLCモードエラー（RUNモードでない）",
    0xC052: "デバイスポイント不正",
    0xC053: "デバイス範囲外",
    0xC054: "デバイス書き込み不可",
    0xC055: "プログラム実行中",
    0xC056: "命令異常",
    0xC058: "パラメータ異常",
    0xC059: "コマンド未対応",
    0xC05C: "要求データ異常",
    0xC05F: "要求内容異常",
    0xC060: "要求データ長異常",
    0xC061: "モニタ登録数オーバー",
    0xC0B5: "CPU処理異常",
}


def check_mcprotocol_error(status: int) -> None:
    """
    MCプロトコルコマンドエラーチェック

    Args:
        status: 応答ステータスコード

    Raises:
        ProtocolStatusError: statusが0以外の場合
    """
    if status == 0:
        return
    raise ProtocolStatusError(status, ERROR_DESCRIPTIONS.get(status))
