"""
Request Scheduler
=================

1接続上の要求を直列化し、送信した電文と次に受信した電文を対応付ける。

3Eフレームの応答には要求IDがないため、同時に送信中の要求は常に1つ。
待ち行列はFIFOのasyncio.Lock（1スロット）で実現する。

状態遷移:
    IDLE -> SENDING -> AWAITING_RESPONSE -> RESOLVED   -> IDLE
                                         -> TIMED_OUT  -> (DRAINING) -> IDLE

タイムアウトした要求は「放棄済み」として残し、遅れて届いた応答を
読み捨てるか、ドレイン期限を過ぎるまでスロットを解放しない。
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from . import errors
from .codec import ResponseFrame, check_response, decode_response
from .constants import MONITORING_TIMER, MONITORING_TIMER_UNIT_SEC
from .errors import MalformedFrameError, ProtocolStatusError, TransportError
from .transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 2.0
# PLC側の監視タイマ（4秒）+ 余裕
DEFAULT_DRAIN_TIMEOUT_SEC = MONITORING_TIMER * MONITORING_TIMER_UNIT_SEC + 0.5


class SchedulerState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    DRAINING = "draining"


class RequestKind(str, Enum):
    READ = "read"
    WRITE = "write"


class PendingRequest:
    """送信中の要求"""

    def __init__(self, kind: RequestKind, generation: int, deadline: float,
                 future: asyncio.Future, result_count: Optional[int] = None):
        self.kind = kind
        self.generation = generation
        self.deadline = deadline
        self.future = future
        self.result_count = result_count
        self.sent_at: Optional[float] = None
        self.abandoned = False

    def __repr__(self):
        return (f"PendingRequest(kind={self.kind.value}, generation={self.generation}, "
                f"abandoned={self.abandoned})")


class RequestScheduler:
    """要求の直列化と応答の対応付け"""

    def __init__(self, transport: Transport, timeout: float = DEFAULT_TIMEOUT_SEC,
                 drain_timeout: Optional[float] = None):
        """
        Args:
            transport: 送受信に使うトランスポート
            timeout: 送信から応答までの待ち時間（秒）
            drain_timeout: タイムアウト後に遅延応答を待つ期限（送信からの秒数）
        """
        self.timeout = timeout
        self.drain_timeout = (DEFAULT_DRAIN_TIMEOUT_SEC if drain_timeout is None
                              else drain_timeout)
        self._transport = transport
        self._lock = asyncio.Lock()
        self._pending: Optional[PendingRequest] = None
        self._generation = 0
        self._state = SchedulerState.IDLE
        self._drain_task: Optional[asyncio.Task] = None

        transport.set_listener(self.feed, self.fail)

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def pending(self) -> Optional[PendingRequest]:
        return self._pending

    async def submit(self, frame: bytes, kind: RequestKind,
                     result_count: Optional[int] = None) -> ResponseFrame:
        """
        電文を送信して応答を待つ

        他の要求が実行中の場合は完了まで待機する（FIFO）。

        Args:
            frame: エンコード済み送信電文
            kind: 読出し / 書込み
            result_count: 読出し点数

        Returns:
            終了コード0の応答電文

        Raises:
            ProtocolStatusError: 終了コードが0以外
            TimeoutError: 期限内に応答なし
            TransportError: 送信失敗・接続断
            MalformedFrameError: 応答電文が壊れている
        """
        await self._lock.acquire()
        handed_off = False
        pending = None
        try:
            loop = asyncio.get_running_loop()
            self._generation += 1
            pending = PendingRequest(
                kind=kind,
                generation=self._generation,
                deadline=loop.time() + self.timeout,
                future=loop.create_future(),
                result_count=result_count,
            )

            # 送信とスロット登録の間に待機点を置かない
            self._state = SchedulerState.SENDING
            self._pending = pending
            self._transport.write(frame)
            pending.sent_at = loop.time()
            self._state = SchedulerState.AWAITING_RESPONSE

            try:
                response = await asyncio.wait_for(asyncio.shield(pending.future),
                                                  timeout=pending.deadline - loop.time())
            except asyncio.TimeoutError:
                self._state = SchedulerState.TIMED_OUT
                logger.warning(f"応答タイムアウト ({self.timeout}s): {pending!r}")
                handed_off = self._abandon(pending)
                raise errors.TimeoutError(self.timeout) from None
            except asyncio.CancelledError:
                handed_off = self._abandon(pending)
                raise

            self._state = SchedulerState.RESOLVED
            return response
        finally:
            if not handed_off:
                self._release(pending)

    def _abandon(self, pending: PendingRequest) -> bool:
        """
        タイムアウトした要求を放棄済みにし、遅延応答のドレインへスロットを引き渡す

        Returns:
            ドレインタスクにスロットを引き渡した場合True
        """
        pending.abandoned = True
        if pending.future.done():
            _consume(pending.future)
            return False

        loop = asyncio.get_running_loop()
        remaining = pending.sent_at + self.drain_timeout - loop.time()
        if remaining <= 0:
            pending.future.cancel()
            return False

        self._state = SchedulerState.DRAINING
        self._drain_task = loop.create_task(self._drain(pending, remaining))
        return True

    async def _drain(self, pending: PendingRequest, remaining: float) -> None:
        try:
            await asyncio.wait_for(pending.future, timeout=remaining)
            logger.warning(f"タイムアウト済み要求の遅延応答を破棄: {pending!r}")
        except asyncio.TimeoutError:
            logger.debug(f"遅延応答なし、スロット解放: {pending!r}")
        except errors.MCError as e:
            logger.debug(f"ドレイン中のエラー: {pending!r} - {e}")
        finally:
            self._release(pending)

    def _release(self, pending: Optional[PendingRequest]) -> None:
        # 解放するのは自分の世代の要求のみ
        current = self._pending
        if current is not None and pending is not None and current.generation == pending.generation:
            self._pending = None
        self._state = SchedulerState.IDLE
        self._drain_task = None
        self._lock.release()

    # ───────────────────────── トランスポートからの通知 ──────────────────────────
    def feed(self, data: bytes) -> None:
        """
        受信データを現在の要求に割り当てる

        送信後に届いた次のチャンクを、無条件に現在の要求の応答とみなす。
        """
        pending = self._pending
        if pending is None or pending.future.done():
            logger.warning(f"未要求の受信データを破棄: {data.hex()}")
            return
        try:
            frame = decode_response(data)
        except MalformedFrameError as e:
            logger.error(f"応答解析失敗: {e}")
            pending.future.set_exception(e)
            return

        if frame.length_mismatch:
            logger.warning(
                f"データ長不一致: header={frame.data_length}, "
                f"actual={frame.payload_size + 2}"
            )

        if pending.abandoned:
            pending.future.set_result(frame)
            return

        self._dispatch(pending, frame)

    def _dispatch(self, pending: PendingRequest, frame: ResponseFrame) -> None:
        try:
            check_response(frame)
        except ProtocolStatusError as e:
            logger.warning(f"PLCエラー応答: {e}")
            pending.future.set_exception(e)
            return
        if pending.result_count is not None and len(frame.payload) != pending.result_count:
            logger.warning(
                f"読出し点数不一致: requested={pending.result_count}, "
                f"received={len(frame.payload)}"
            )
        pending.future.set_result(frame)

    def fail(self, exc: Exception) -> None:
        """トランスポートエラーで現在の要求を失敗させる"""
        pending = self._pending
        if pending is None or pending.future.done():
            return
        if not isinstance(exc, TransportError):
            exc = TransportError(str(exc))
        logger.error(f"送受信中の要求を失敗扱い: {pending!r} - {exc}")
        pending.future.set_exception(exc)


def _consume(future: asyncio.Future) -> None:
    """完了済みFutureの例外を取り出す（未取得警告の抑止）"""
    if not future.cancelled():
        future.exception()
