"""
Transport
=========

TCP接続の抽象化
受信データはリスナー（on_data）へ、切断・エラーは on_error へ通知する。
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .errors import TransportError

logger = logging.getLogger(__name__)

DataListener = Callable[[bytes], None]
ErrorListener = Callable[[Exception], None]


class Transport(ABC):
    """トランスポートの抽象基底クラス"""

    def __init__(self):
        self._on_data: Optional[DataListener] = None
        self._on_error: Optional[ErrorListener] = None

    def set_listener(self, on_data: DataListener, on_error: ErrorListener) -> None:
        """
        受信・エラー通知先を登録

        Args:
            on_data: 受信チャンクごとに呼ばれる
            on_error: 接続断・I/Oエラー時に呼ばれる
        """
        self._on_data = on_data
        self._on_error = on_error

    def _notify_data(self, data: bytes) -> None:
        if self._on_data is None:
            logger.warning(f"リスナー未登録のため受信データを破棄: {data.hex()}")
            return
        self._on_data(data)

    def _notify_error(self, exc: Exception) -> None:
        if self._on_error is not None:
            self._on_error(exc)

    @abstractmethod
    async def open(self, host: str, port: int, timeout: float = 5.0) -> None:
        """接続"""

    @abstractmethod
    def close(self) -> None:
        """切断"""

    @abstractmethod
    def is_open(self) -> bool:
        """接続中かどうか"""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """
        送信

        Raises:
            TransportError: 未接続・書き込み失敗
        """


class TCPTransport(Transport, asyncio.Protocol):
    """asyncioのイベント駆動TCPトランスポート"""

    def __init__(self):
        super().__init__()
        self._transport: Optional[asyncio.Transport] = None
        self._remote_addr: Optional[tuple] = None

    # ───────────────────────── asyncio.Protocol ──────────────────────────
    def connection_made(self, transport) -> None:
        self._transport = transport
        logger.debug(f"opened: {self._remote_addr}")

    def data_received(self, data: bytes) -> None:
        logger.debug(f"Recv: {data.hex()}")
        self._notify_data(data)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._transport = None
        if exc is None:
            logger.debug(f"closed: {self._remote_addr}")
            self._notify_error(TransportError("connection closed"))
        else:
            logger.warning(f"接続断: {self._remote_addr} - {exc}")
            self._notify_error(TransportError(str(exc)))

    # ───────────────────────── Transport ──────────────────────────
    async def open(self, host: str, port: int, timeout: float = 5.0) -> None:
        """
        PLC接続

        Args:
            host: IPアドレスまたはホスト名
            port: ポート番号
            timeout: 接続タイムアウト秒数

        Raises:
            TransportError: 接続失敗
        """
        if self.is_open():
            return

        loop = asyncio.get_running_loop()
        self._remote_addr = (host, port)
        try:
            await asyncio.wait_for(
                loop.create_connection(lambda: self, host, port),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise TransportError(f"Timeout connecting to {host}:{port}") from None
        except OSError as e:
            raise TransportError(f"Failed to connect to {host}:{port} - {e}") from e

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def is_open(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    def write(self, data: bytes) -> None:
        if not self.is_open():
            raise TransportError("Socket is not connected. Please use open method")

        logger.debug(f"Send: {data.hex()}")
        try:
            self._transport.write(data)
        except (OSError, RuntimeError) as e:
            raise TransportError(f"write failed - {e}") from e
