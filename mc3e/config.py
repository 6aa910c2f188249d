"""
PLC Connection Config
=====================

環境変数からのPLC接続設定
"""

import os

from .options import ConnectionOptions


def _int_env(name: str, default: str) -> int:
    # "0x03FF" のような16進表記も受け付ける
    return int(os.getenv(name, default), 0)


class PLCConnectionConfig:
    """PLC接続設定クラス"""

    def __init__(self, ip: str = None, port: int = None, timeout_sec: float = None,
                 plc_model: str = None, network_no: int = None, pc_no: int = None,
                 unit_io_no: int = None, unit_station_no: int = None):
        self.ip = ip if ip is not None else os.getenv("PLC_IP", "127.0.0.1")
        self.port = port if port is not None else int(os.getenv("PLC_PORT", "5511"))
        self.timeout_sec = (timeout_sec if timeout_sec is not None
                            else float(os.getenv("PLC_TIMEOUT_SEC", "2.0")))
        self.plc_model = plc_model if plc_model is not None else os.getenv("PLC_MODEL", "Q")
        self.network_no = network_no if network_no is not None else _int_env("PLC_NETWORK_NO", "0")
        self.pc_no = pc_no if pc_no is not None else _int_env("PLC_PC_NO", "0xFF")
        self.unit_io_no = unit_io_no if unit_io_no is not None else _int_env("PLC_UNIT_IO_NO", "0x03FF")
        self.unit_station_no = (unit_station_no if unit_station_no is not None
                                else _int_env("PLC_UNIT_STATION_NO", "0"))

    def to_options(self) -> ConnectionOptions:
        """
        接続オプションを生成

        ユニットI/O番号は16ビット値としてリトルエンディアンで2バイトに展開する
        （0x03FF → FF 03）。

        Raises:
            UnsupportedModelError: Q / iQ-R 以外の機種
            ValueError: 範囲外の設定値（pydantic.ValidationError を含む）
        """
        if not 0 <= self.unit_io_no <= 0xFFFF:
            raise ValueError("unit_io_no must be 0 <= unit_io_no <= 65535")

        return ConnectionOptions(
            pc_no=self.pc_no,
            network_no=self.network_no,
            unit_io_no=tuple(self.unit_io_no.to_bytes(2, "little")),
            unit_station_no=self.unit_station_no,
            plc_model=self.plc_model,
        )

    def __str__(self):
        return f"PLC({self.ip}:{self.port}, model={self.plc_model}, timeout={self.timeout_sec}s)"
