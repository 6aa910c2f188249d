#!/usr/bin/env python3
"""
MC Protocol 3E PLC Simulator
============================

3Eフレーム（バイナリ）のワード一括読出し（0401）・一括書込み（1401）に応答する
簡易PLCシミュレータ。ワードデバイスはデバイスコードごとにメモリ上で保持する。

サブコマンド 0000 はQシリーズ（番号3バイト + コード1バイト）、
0002 はiQ-Rシリーズ（番号4バイト + コード2バイト）として解釈する。

単体起動:
    python -m mc3e.simulator --port 5511
"""

import argparse
import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from .codec import decode_value, encode_value
from .constants import (
    CMD_BATCH_READ,
    CMD_BATCH_WRITE,
    DEVICE_CODES,
    MODEL_LAYOUTS,
    STATUS_BAD_REQUEST_DATA,
    STATUS_OK,
    STATUS_UNSUPPORTED_COMMAND,
    SUBHEADER_RESPONSE,
)

logger = logging.getLogger(__name__)

# サブヘッダ(2) + アクセス経路(5) + データ長(2)
REQUEST_HEADER_SIZE = 9

_LAYOUTS_BY_SUBCOMMAND = {layout.subcommand: layout for layout in MODEL_LAYOUTS.values()}


class PLCSimulator:
    """MCプロトコル3E PLCシミュレータ"""

    def __init__(self, host: str = "127.0.0.1", port: int = 0):
        self.host = host
        self.port = port
        self.memory: Dict[int, Dict[int, int]] = defaultdict(dict)
        self.requests: List[bytes] = []
        self.force_return_code: Optional[int] = None
        self._delays: List[float] = []
        self._server: Optional[asyncio.AbstractServer] = None
        self._writers = set()

    def delay_next(self, seconds: float) -> None:
        """次の要求への応答を指定秒数遅らせる（1回限り）"""
        self._delays.append(seconds)

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle_client, self.host, self.port)
        # ポート0指定時は割り当てられたポートを反映
        self.port = self._server.sockets[0].getsockname()[1]
        logger.info(f"=== Mock PLC Server Listening on {self.host}:{self.port} ===")

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            for writer in list(self._writers):
                writer.close()
            await self._server.wait_closed()
            self._server = None

    async def serve_forever(self) -> None:
        await self.start()
        async with self._server:
            await self._server.serve_forever()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def _handle_client(self, reader: asyncio.StreamReader,
                             writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        logger.info(f"[+] Connected by {peer}")
        self._writers.add(writer)
        try:
            while True:
                header = await reader.readexactly(REQUEST_HEADER_SIZE)
                data_length = decode_value(header[7:9])
                body = await reader.readexactly(data_length)
                request = header + body
                self.requests.append(request)

                response = self.handle_request(request)
                if self._delays:
                    await asyncio.sleep(self._delays.pop(0))
                writer.write(response)
                await writer.drain()
        except asyncio.IncompleteReadError:
            logger.info(f"[-] Connection closed: {peer}")
        except ConnectionResetError:
            logger.info(f"[-] Connection reset by peer: {peer}")
        finally:
            self._writers.discard(writer)
            writer.close()

    def handle_request(self, request: bytes) -> bytes:
        """
        要求電文を処理して応答電文を返す

        Args:
            request: 要求電文（1フレーム分）

        Returns:
            応答電文
        """
        access_route = request[2:7]
        status, response_data = self._execute(request[11:])
        if self.force_return_code is not None:
            status, response_data = self.force_return_code, b""
        return make_response(access_route, status, response_data)

    def _execute(self, request_data: bytes) -> Tuple[int, bytes]:
        if len(request_data) < 4:
            return STATUS_BAD_REQUEST_DATA, b""

        command = decode_value(request_data[0:2])
        subcommand = decode_value(request_data[2:4])
        layout = _LAYOUTS_BY_SUBCOMMAND.get(subcommand)
        if command not in (CMD_BATCH_READ, CMD_BATCH_WRITE) or layout is None:
            logger.warning(f"[?] Unknown Command: {command:04X} / {subcommand:04X}")
            return STATUS_UNSUPPORTED_COMMAND, b""

        index = 4
        number = decode_value(request_data[index:index + layout.device_number_width])
        index += layout.device_number_width
        device_code = decode_value(request_data[index:index + layout.device_code_width])
        index += layout.device_code_width
        points = decode_value(request_data[index:index + 2])
        index += 2

        if device_code not in DEVICE_CODES or points == 0:
            return STATUS_BAD_REQUEST_DATA, b""

        device = self.memory[device_code]
        if command == CMD_BATCH_READ:
            logger.info(f"[*] Read Word Request (Dev: {device_code:#x}, No: {number}, Count: {points})")
            response_data = bytes()
            for offset in range(points):
                response_data += encode_value(device.get(number + offset, 0), "short", signed=True)
            return STATUS_OK, response_data

        values = request_data[index:]
        if len(values) != points * 2:
            return STATUS_BAD_REQUEST_DATA, b""
        logger.info(f"[*] Write Word Request (Dev: {device_code:#x}, No: {number}, Count: {points})")
        for offset in range(points):
            device[number + offset] = decode_value(values[offset * 2:offset * 2 + 2], signed=True)
        return STATUS_OK, b""


def make_response(access_route: bytes, status: int, response_data: bytes = b"") -> bytes:
    """
    応答電文作成

    Args:
        access_route: 要求電文のアクセス経路（5バイト）
        status: 終了コード
        response_data: 応答データ

    Returns:
        応答電文
    """
    mc_data = bytes()
    mc_data += encode_value(SUBHEADER_RESPONSE, "short")
    mc_data += access_route
    # データ長 = 終了コード(2) + 応答データ
    mc_data += encode_value(2 + len(response_data), "short")
    mc_data += encode_value(status, "short")
    mc_data += response_data
    return mc_data


def main(argv=None):
    parser = argparse.ArgumentParser(description="MCプロトコル3E PLCシミュレータ")
    parser.add_argument("--host", default="127.0.0.1", help="バインドホスト (デフォルト: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=5511, help="ポート番号 (デフォルト: 5511)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="ログレベル (デフォルト: INFO)"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    simulator = PLCSimulator(args.host, args.port)
    try:
        asyncio.run(simulator.serve_forever())
    except KeyboardInterrupt:
        logger.info("キーボード割り込み受信")


if __name__ == "__main__":
    main()
