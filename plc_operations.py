"""
PLC Operations
==============

PLC通信の共通ロジック
REST APIから共有される処理（1接続をProtocolClientで保持）
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from mc3e import PLCConnectionConfig, ProtocolClient
from mc3e.device import get_supported_devices, parse_device
from mc3e.errors import AddressError, MCError

logger = logging.getLogger(__name__)


class PLCOperations:
    """PLC操作の共通ロジック"""

    def __init__(self, config: PLCConnectionConfig = None,
                 client: Optional[ProtocolClient] = None):
        self.config = config or PLCConnectionConfig()
        self.client = client or ProtocolClient(
            options=self.config.to_options(),
            timeout=self.config.timeout_sec,
        )

    async def connect(self) -> None:
        """
        PLCへ接続（接続済みなら何もしない）

        切断後の再接続は自動では行わず、呼び出し側が明示的に行う。
        """
        if not self.client.is_open():
            await self.client.open(self.config.ip, self.config.port)

    def close(self) -> None:
        self.client.close()

    async def read_words(self, device_spec: str, length: int = 1) -> List[int]:
        """
        ワードデバイスを読み取り

        Args:
            device_spec: 先頭デバイス ("D100" 等)
            length: 読み取り長

        Returns:
            List[int]: 読み取り値リスト

        Raises:
            MCError: アドレス不正・PLC通信エラー（未接続時はTransportError）
        """
        return await self.client.read_words(device_spec, length)

    async def write_words(self, device_spec: str, values: Sequence[int]) -> int:
        """
        ワードデバイスへ書き込み

        Returns:
            int: 書き込み点数
        """
        await self.client.write_words(device_spec, values)
        return len(values)

    def get_supported_devices(self) -> List[str]:
        """
        サポートされているデバイス種別を取得

        Returns:
            List[str]: サポートデバイスリスト
        """
        return get_supported_devices()

    def validate_device_spec(self, device_spec: str) -> bool:
        """
        デバイス指定文字列の妥当性をチェック

        Args:
            device_spec: デバイス指定文字列

        Returns:
            bool: 妥当性判定結果
        """
        try:
            parse_device(device_spec)
            return True
        except AddressError:
            return False

    async def test_connection(self) -> Dict[str, Any]:
        """
        PLC接続テスト（D0を1点読み取り）

        Returns:
            Dict[str, Any]: 接続テスト結果
        """
        result = {
            "config": str(self.config),
            "connected": False,
            "error": None,
            "response_time_ms": None
        }

        try:
            start_time = time.perf_counter()
            test_values = await self.read_words("D0", 1)
            end_time = time.perf_counter()

            result["connected"] = True
            result["response_time_ms"] = round((end_time - start_time) * 1000, 2)
            result["test_read_value"] = test_values[0] if test_values else None
        except MCError as e:
            logger.warning(f"接続テスト失敗: {e}")
            result["error"] = str(e)

        return result
