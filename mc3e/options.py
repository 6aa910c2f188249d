"""
Connection Options
==================

アクセス経路とPLC機種の設定（イミュータブル）
"""

from typing import Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import FRAME_3E, PLCModel
from .errors import UnsupportedModelError


class ConnectionOptions(BaseModel):
    """MCプロトコル接続オプション"""

    model_config = ConfigDict(frozen=True)

    pc_no: int = Field(0xFF, ge=0, le=0xFF, description="PC番号")
    network_no: int = Field(0x00, ge=0, le=0xFF, description="ネットワーク番号")
    unit_io_no: Tuple[int, int] = Field(
        (0xFF, 0x03), description="要求先ユニットI/O番号（送信順の2バイト）"
    )
    unit_station_no: int = Field(0x00, ge=0, le=0xFF, description="要求先ユニット局番号")
    plc_model: PLCModel = Field(PLCModel.Q, description="PLC機種")
    frame_type: Literal["3E"] = FRAME_3E

    @field_validator("plc_model", mode="before")
    @classmethod
    def _check_plc_model(cls, value):
        # ValidationError ではなく UnsupportedModelError をそのまま送出する
        try:
            return PLCModel(value)
        except ValueError:
            raise UnsupportedModelError(value) from None

    @field_validator("unit_io_no")
    @classmethod
    def _check_unit_io_no(cls, value: Tuple[int, int]) -> Tuple[int, int]:
        for byte in value:
            if not 0 <= byte <= 0xFF:
                raise ValueError("unit_io_no bytes must be 0 <= byte <= 255")
        return value

    @property
    def access_route(self) -> bytes:
        """アクセス経路（5バイト）"""
        return bytes([
            self.network_no,
            self.pc_no,
            *self.unit_io_no,
            self.unit_station_no,
        ])
