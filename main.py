#!/usr/bin/env python3
"""
MC3E Gateway 起動スクリプト
===========================

FastAPI REST API（MCプロトコル3Eゲートウェイ）を起動するためのスクリプト
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import uvicorn

from version import __version__, format_version_string


# ログ設定
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("mc3e-gateway-launcher")


def print_banner():
    """
    起動時のバナーを表示
    """
    banner = f"""
============================================================
                MC3E Gateway 起動システム
                      FastAPI REST API
                      Version {__version__:^8}
============================================================
    """
    print(banner)
    print(format_version_string())
    print("="*60 + "\n")


def print_service_info(args, host: str):
    """
    起動するサービスの情報を表示
    """
    logger.info("📋 起動設定:")

    if args.production:
        logger.info("  ⚠️  本番モード: 外部アクセス許可")
    else:
        logger.info("  🔒 開発モード: localhostのみアクセス可能")

    logger.info(f"  🌐 FastAPI REST API: http://{host}:{args.port}/docs")

    # 環境変数の表示
    plc_ip = os.getenv("PLC_IP", "127.0.0.1")
    plc_port = os.getenv("PLC_PORT", "5511")
    timeout_sec = os.getenv("PLC_TIMEOUT_SEC", "2.0")
    plc_model = os.getenv("PLC_MODEL", "Q")
    logger.info(f"  📡 PLC設定: {plc_ip}:{plc_port} (model: {plc_model}, timeout: {timeout_sec}s)")


def build_parser() -> argparse.ArgumentParser:
    """構成済みの引数パーサーを返す"""
    parser = argparse.ArgumentParser(
        description="MC3E Gateway 起動システム",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用例:
  # 開発モード（localhostのみ）
  python main.py

  # 本番モード（外部アクセス許可）
  python main.py --production

  # シミュレータに接続
  python -m mc3e.simulator --port 5511 &
  python main.py

環境変数設定:
  PLC_IP=192.168.1.100          # PLCのIPアドレス
  PLC_PORT=5511                 # PLCのポート番号
  PLC_TIMEOUT_SEC=2.0           # 応答タイムアウト秒数
  PLC_MODEL=Q                   # PLC機種 (Q / iQ-R)
  PLC_NETWORK_NO=0              # ネットワーク番号
  PLC_PC_NO=0xFF                # PC番号
  PLC_UNIT_IO_NO=0x03FF         # 要求先ユニットI/O番号
  PLC_UNIT_STATION_NO=0         # 要求先ユニット局番号
        """
    )

    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="REST APIのバインドホスト (デフォルト: 127.0.0.1)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="REST APIのポート番号 (デフォルト: 8000)"
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="ホットリロードを有効にする"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="ログレベル (デフォルト: INFO)"
    )

    parser.add_argument(
        "--production",
        action="store_true",
        help="本番モード: 外部からのアクセスを許可 (0.0.0.0でバインド)"
    )

    return parser


def run(argv: Optional[List[str]] = None):
    """引数を指定してランチャーを実行"""
    parser = build_parser()
    args = parser.parse_args(argv)

    # ログレベル設定
    logging.getLogger().setLevel(getattr(logging, args.log_level))

    host = "0.0.0.0" if args.production else args.host

    print_banner()
    print_service_info(args, host)

    try:
        uvicorn.run(
            "gateway:create_app",
            factory=True,
            host=host,
            port=args.port,
            reload=args.reload,
            log_level=args.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("キーボード割り込みを受信しました")
    except Exception as e:
        logger.error(f"起動エラー: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
