"""
MC Protocol 3E Frame Codec
==========================

3Eフレーム（バイナリ）の電文組み立てと応答解析

要求電文:
| サブヘッダ | NW番号 | PC番号 | ユニットI/O番号 | ユニット局番号 | データ長 | 監視タイマ | 要求データ |
| 2          | 1      | 1      | 2               | 1              | 2        | 2          | n          |

応答電文:
| サブヘッダ | アクセス経路 | データ長 | 終了コード | 応答データ |
| 2          | 5            | 2        | 2          | 2 x N      |
"""

from typing import Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict

from .constants import (
    CMD_BATCH_READ,
    CMD_BATCH_WRITE,
    COUNT_MAX,
    COUNT_MIN,
    MODEL_LAYOUTS,
    MONITORING_TIMER,
    RESPONSE_ACCESS_ROUTE_INDEX,
    RESPONSE_DATA_INDEX,
    RESPONSE_DATA_LENGTH_INDEX,
    RESPONSE_STATUS_INDEX,
    SUBHEADER_REQUEST,
    WORD_MAX,
    WORD_MIN,
    ModelLayout,
    PLCModel,
)
from .device import DeviceAddress
from .errors import (
    MalformedFrameError,
    UnsupportedModelError,
    ValueOutOfRangeError,
    check_mcprotocol_error,
)
from .options import ConnectionOptions


def encode_value(value: int, mode: str = "short", signed: bool = False) -> bytes:
    """
    値をリトルエンディアンのバイト列にエンコード

    Args:
        value: エンコードする値
        mode: "byte", "short", "long"
        signed: 符号付きかどうか

    Returns:
        エンコード済みバイト列
    """
    size_map = {"byte": 1, "short": 2, "long": 4}
    if mode not in size_map:
        raise ValueError(f"Invalid mode: {mode}")

    return value.to_bytes(size_map[mode], "little", signed=signed)


def decode_value(data: bytes, signed: bool = False) -> int:
    """リトルエンディアンのバイト列を値にデコード"""
    return int.from_bytes(data, "little", signed=signed)


def get_model_layout(plc_model: Union[PLCModel, str]) -> ModelLayout:
    """
    機種ごとのフィールド構成を取得

    Raises:
        UnsupportedModelError: Q / iQ-R 以外
    """
    try:
        return MODEL_LAYOUTS[PLCModel(plc_model)]
    except (ValueError, KeyError):
        raise UnsupportedModelError(plc_model) from None


def _check_range(field: str, value: int, minimum: int, maximum: int) -> None:
    if not minimum <= value <= maximum:
        raise ValueOutOfRangeError(field, value, minimum, maximum)


def make_devicedata(address: DeviceAddress, layout: ModelLayout) -> bytes:
    """
    デバイスデータ（デバイス番号 + デバイスコード）を生成

    Args:
        address: デバイスアドレス
        layout: 機種のフィールド構成

    Returns:
        デバイスデータのバイト列
    """
    _check_range("device number", address.number, 0, layout.device_number_max)

    device_data = bytes()
    device_data += address.number.to_bytes(layout.device_number_width, "little")
    device_data += address.device_type.code.to_bytes(layout.device_code_width, "little")
    return device_data


def make_commanddata(command: int, subcommand: int) -> bytes:
    """コマンドデータ作成"""
    command_data = bytes()
    command_data += encode_value(command, "short")
    command_data += encode_value(subcommand, "short")
    return command_data


def make_senddata(request_data: bytes, options: ConnectionOptions) -> bytes:
    """
    送信データ作成

    Args:
        request_data: コマンド以降の要求データ
        options: 接続オプション

    Returns:
        送信電文
    """
    timer_data = encode_value(MONITORING_TIMER, "short")

    mc_data = bytes()
    mc_data += encode_value(SUBHEADER_REQUEST, "short")
    mc_data += options.access_route
    # データ長は監視タイマ以降のバイト数
    mc_data += encode_value(len(timer_data) + len(request_data), "short")
    mc_data += timer_data
    mc_data += request_data
    return mc_data


def encode_read_words(address: DeviceAddress, count: int,
                      options: ConnectionOptions) -> bytes:
    """
    ワード単位一括読出し電文（0401）

    Args:
        address: 先頭デバイス
        count: 読出し点数
        options: 接続オプション

    Returns:
        送信電文

    Raises:
        UnsupportedModelError, ValueOutOfRangeError
    """
    layout = get_model_layout(options.plc_model)
    _check_range("count", count, COUNT_MIN, COUNT_MAX)

    request_data = bytes()
    request_data += make_commanddata(CMD_BATCH_READ, layout.subcommand)
    request_data += make_devicedata(address, layout)
    request_data += encode_value(count, "short")

    return make_senddata(request_data, options)


def encode_write_words(address: DeviceAddress, values: Sequence[int],
                       options: ConnectionOptions) -> bytes:
    """
    ワード単位一括書込み電文（1401）

    Args:
        address: 先頭デバイス
        values: 書込み値（符号付き16ビット）
        options: 接続オプション

    Returns:
        送信電文

    Raises:
        UnsupportedModelError, ValueOutOfRangeError
    """
    layout = get_model_layout(options.plc_model)
    _check_range("count", len(values), COUNT_MIN, COUNT_MAX)

    request_data = bytes()
    request_data += make_commanddata(CMD_BATCH_WRITE, layout.subcommand)
    request_data += make_devicedata(address, layout)
    request_data += encode_value(len(values), "short")

    for value in values:
        _check_range("value", value, WORD_MIN, WORD_MAX)
        request_data += encode_value(value, "short", signed=True)

    return make_senddata(request_data, options)


class ResponseFrame(BaseModel):
    """解析済み応答電文"""

    model_config = ConfigDict(frozen=True)

    sub_header: int
    access_route: bytes
    data_length: int
    return_code: int
    payload: Tuple[int, ...] = ()
    payload_size: int = 0

    @property
    def is_success(self) -> bool:
        return self.return_code == 0

    @property
    def length_mismatch(self) -> bool:
        """データ長が終了コード + 応答データのバイト数と一致しない"""
        return self.data_length != self.payload_size + 2


def decode_response(data: bytes) -> ResponseFrame:
    """
    応答電文を解析

    終了コードが0以外でも例外にはしない（check_responseで判定）。

    Args:
        data: 受信したバイト列（1フレーム分）

    Returns:
        ResponseFrame

    Raises:
        MalformedFrameError: ヘッダ分のバイト数がない
    """
    if len(data) < RESPONSE_DATA_INDEX:
        raise MalformedFrameError(
            data, f"{len(data)} bytes, header needs {RESPONSE_DATA_INDEX}"
        )

    payload = []
    data_index = RESPONSE_DATA_INDEX
    # 末尾の端数バイトは無視
    while data_index + 2 <= len(data):
        payload.append(decode_value(data[data_index:data_index + 2], signed=True))
        data_index += 2

    return ResponseFrame(
        sub_header=decode_value(data[0:2]),
        access_route=bytes(data[RESPONSE_ACCESS_ROUTE_INDEX:RESPONSE_DATA_LENGTH_INDEX]),
        data_length=decode_value(data[RESPONSE_DATA_LENGTH_INDEX:RESPONSE_STATUS_INDEX]),
        return_code=decode_value(data[RESPONSE_STATUS_INDEX:RESPONSE_DATA_INDEX]),
        payload=tuple(payload),
        payload_size=len(data) - RESPONSE_DATA_INDEX,
    )


def check_response(frame: ResponseFrame) -> ResponseFrame:
    """
    終了コードチェック

    Raises:
        ProtocolStatusError: 終了コードが0以外
    """
    check_mcprotocol_error(frame.return_code)
    return frame
