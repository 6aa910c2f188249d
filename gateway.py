# ------------------------------------------------------------
# gateway.py
# FastAPI Gateway ─ MC 3E Word Read / Write
# ------------------------------------------------------------
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from mc3e import PLCConnectionConfig
from mc3e.errors import (
    AddressError,
    MCError,
    ProtocolStatusError,
    TimeoutError,
    TransportError,
    UnsupportedModelError,
    ValueOutOfRangeError,
)
from plc_operations import PLCOperations
from version import __version__, get_version_info

logger = logging.getLogger(__name__)


# ──────────────────── リクエスト / レスポンス ────────────────────
class ReadRequest(BaseModel):
    device: str = Field(..., description="先頭デバイス（例: D100）")
    count: int = Field(1, description="読み取り点数")


class ReadResponse(BaseModel):
    """PLCデバイス読み取りレスポンス"""
    device: str
    values: List[int]


class WriteRequest(BaseModel):
    device: str = Field(..., description="先頭デバイス（例: D100）")
    values: List[int] = Field(..., description="書き込み値（符号付き16ビット）")


class WriteResponse(BaseModel):
    """PLCデバイス書き込みレスポンス"""
    device: str
    written: int


class StatusResponse(BaseModel):
    connected: bool
    plc: str
    supported_devices: List[str]


# ──────────────────── エラー変換 ────────────────────
def to_http_exception(ex: MCError) -> HTTPException:
    """ライブラリのエラーをHTTPステータスへ変換"""
    if isinstance(ex, (AddressError, ValueOutOfRangeError, UnsupportedModelError)):
        return HTTPException(status_code=400, detail=str(ex))
    if isinstance(ex, ProtocolStatusError):
        return HTTPException(status_code=502, detail={
            "message": str(ex),
            "errorcode": ex.errorcode_hex,
        })
    if isinstance(ex, TimeoutError):
        return HTTPException(status_code=504, detail=str(ex))
    if isinstance(ex, TransportError):
        return HTTPException(status_code=503, detail=str(ex))
    return HTTPException(status_code=500, detail=str(ex))


def get_plc_ops(request: Request) -> PLCOperations:
    return request.app.state.plc_ops


# ──────────────────── FastAPI ────────────────────
def create_app(config: PLCConnectionConfig = None,
               plc_ops: Optional[PLCOperations] = None) -> FastAPI:
    """
    ゲートウェイアプリケーションを生成

    Args:
        config: PLC接続設定（省略時は環境変数）
        plc_ops: PLC操作インスタンス（省略時は config から生成）

    Returns:
        FastAPI: アプリケーション
    """
    plc_ops = plc_ops or PLCOperations(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"PLC接続設定: {plc_ops.config}")
        try:
            await plc_ops.connect()
        except TransportError as e:
            # 起動は継続し、/api/connect で再接続する
            logger.error(f"PLC接続失敗: {e}")
        yield
        plc_ops.close()

    app = FastAPI(
        title="MC3E Gateway API",
        description="三菱PLCとMCプロトコル（3Eフレーム）で通信するためのGateway API。",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.plc_ops = plc_ops

    # ──────────────────── CORS設定 ────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/read", tags=["Device Read"],
              response_model=ReadResponse,
              operation_id="read_words",
              summary="ワードデバイス読み取り")
    async def api_read(req: ReadRequest, ops: PLCOperations = Depends(get_plc_ops)):
        try:
            values = await ops.read_words(req.device, req.count)
        except MCError as ex:
            raise to_http_exception(ex)
        return ReadResponse(device=req.device, values=values)

    @app.get("/api/read/{device}", tags=["Device Read"],
             response_model=ReadResponse,
             operation_id="read_words_get",
             summary="ワードデバイス読み取り (GET)")
    async def api_read_get(
        device: str = Path(..., description="先頭デバイス（例: D100）"),
        count: int = Query(1, description="読み取り点数"),
        ops: PLCOperations = Depends(get_plc_ops),
    ):
        return await api_read(ReadRequest(device=device, count=count), ops)

    @app.post("/api/write", tags=["Device Write"],
              response_model=WriteResponse,
              operation_id="write_words",
              summary="ワードデバイス書き込み")
    async def api_write(req: WriteRequest, ops: PLCOperations = Depends(get_plc_ops)):
        try:
            written = await ops.write_words(req.device, req.values)
        except MCError as ex:
            raise to_http_exception(ex)
        return WriteResponse(device=req.device, written=written)

    @app.post("/api/connect", tags=["System Status"],
              response_model=StatusResponse,
              summary="PLC接続（再接続）")
    async def api_connect(ops: PLCOperations = Depends(get_plc_ops)):
        try:
            await ops.connect()
        except TransportError as ex:
            raise to_http_exception(ex)
        return await api_status(ops)

    @app.get("/api/status", tags=["System Status"],
             response_model=StatusResponse,
             summary="接続状態の確認")
    async def api_status(ops: PLCOperations = Depends(get_plc_ops)):
        return StatusResponse(
            connected=ops.client.is_open(),
            plc=str(ops.config),
            supported_devices=ops.get_supported_devices(),
        )

    @app.get("/api/version", tags=["System Status"], summary="バージョン情報")
    async def api_version():
        return get_version_info()

    return app
