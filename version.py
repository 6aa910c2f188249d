"""
MC3E Gateway バージョン情報
===========================

バージョンは mc3e パッケージの __version__ を唯一の定義とする
"""

import platform

import fastapi
import pydantic
import uvicorn

from mc3e import __version__
from mc3e.constants import MODEL_LAYOUTS
from mc3e.device import get_supported_devices


def get_version_info() -> dict:
    """
    ゲートウェイと依存ライブラリのバージョン情報

    Returns:
        dict: /api/version の応答内容
    """
    return {
        "version": __version__,
        "python_version": platform.python_version(),
        "frame": "3E (binary)",
        "plc_models": [model.value for model in MODEL_LAYOUTS],
        "devices": get_supported_devices(),
        "libraries": {
            "fastapi": fastapi.__version__,
            "pydantic": pydantic.VERSION,
            "uvicorn": uvicorn.__version__,
        },
    }


def format_version_string() -> str:
    """起動バナー用のバージョン文字列"""
    info = get_version_info()
    libraries = ", ".join(f"{lib} {ver}" for lib, ver in info["libraries"].items())
    return "\n".join([
        f"MC3E Gateway v{info['version']} (Python {info['python_version']})",
        f"フレーム: {info['frame']} / 機種: {', '.join(info['plc_models'])}",
        f"デバイス: {', '.join(info['devices'])}",
        f"ライブラリ: {libraries}",
    ])


if __name__ == "__main__":
    print(format_version_string())
