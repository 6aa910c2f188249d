"""
MC Protocol 3E Client
=====================

MCプロトコル3Eフレーム（バイナリ）ワード読み書きクライアント
"""

import logging
from typing import List, Optional, Sequence

from .codec import encode_read_words, encode_write_words
from .device import parse_device
from .options import ConnectionOptions
from .scheduler import DEFAULT_TIMEOUT_SEC, RequestKind, RequestScheduler
from .transport import TCPTransport, Transport

logger = logging.getLogger(__name__)


class ProtocolClient:
    """MCプロトコル3E通信クラス"""

    def __init__(self, options: Optional[ConnectionOptions] = None,
                 timeout: float = DEFAULT_TIMEOUT_SEC,
                 drain_timeout: Optional[float] = None,
                 transport: Optional[Transport] = None):
        """
        コンストラクタ

        Args:
            options: 接続オプション（省略時はQシリーズのデフォルト）
            timeout: 応答待ち秒数
            drain_timeout: タイムアウト後に遅延応答を読み捨てる期限（送信からの秒数）
            transport: トランスポート（省略時はTCP）
        """
        self.options = options or ConnectionOptions()
        self.transport = transport or TCPTransport()
        self.scheduler = RequestScheduler(self.transport, timeout=timeout,
                                          drain_timeout=drain_timeout)

    async def open(self, host: str, port: int, connect_timeout: float = 5.0) -> None:
        """
        PLC接続

        Args:
            host: IPアドレスまたはホスト名
            port: ポート番号
            connect_timeout: 接続タイムアウト秒数
        """
        logger.debug(f"{host}:{port} connecting...")
        await self.transport.open(host, port, timeout=connect_timeout)
        logger.info(f"PLC接続: {host}:{port} ({self.options.plc_model.value})")

    def close(self) -> None:
        """接続を閉じる"""
        self.transport.close()

    def is_open(self) -> bool:
        return self.transport.is_open()

    async def read_words(self, address: str, count: int) -> List[int]:
        """
        ワード単位一括読出し

        Args:
            address: 先頭デバイス（例: "D1000"）
            count: 読出し点数

        Returns:
            ワード値リスト（符号付き16ビット）
        """
        device = parse_device(address)
        frame = encode_read_words(device, count, self.options)

        logger.debug(f"get words: {device} x {count}")
        response = await self.scheduler.submit(frame, RequestKind.READ, result_count=count)

        return list(response.payload)

    async def read_word(self, address: str) -> int:
        """1ワード読出し"""
        values = await self.read_words(address, 1)
        return values[0]

    async def write_words(self, address: str, values: Sequence[int]) -> None:
        """
        ワード単位一括書込み

        Args:
            address: 先頭デバイス
            values: 書込み値リスト（符号付き16ビット）
        """
        device = parse_device(address)
        frame = encode_write_words(device, list(values), self.options)

        logger.debug(f"set words: {device} - {list(values)}")
        await self.scheduler.submit(frame, RequestKind.WRITE)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
