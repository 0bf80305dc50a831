"""会话 Orchestrator 核心模块。

负责维护内存中的消息序列、一次只允许一个交互（Exchange）在进行、
对外提供取消能力，并把流式快照同步到正在生成的助手消息上。

状态机：Idle → Sending → (Streaming | AwaitingResponse) → Settled，
结算后回到 Idle。结算结果为 success / cancelled / failed 三种之一。

只有本模块会根据调用结果修改可见的会话内容：
- 流式文本：先追加空的占位助手消息，再随快照原地更新；
  失败时整条删除占位消息，取消时保留已写入的部分内容。
- 图片 / 音频 / vision：结果确定后才追加助手消息；失败时清理空内容残留。
"""

import logging
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from chat_core.agents.router import (
    AudioCommand,
    ImageCommand,
    PlainCommand,
    VisionCommand,
    classify,
)
from chat_core.config.credentials import resolve_api_key
from chat_core.config.settings import settings
from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.conversation import Conversation, ConversationStore
from chat_core.domain.exceptions import (
    BusinessError,
    ExchangeCancelledError,
    NoImageAvailableError,
    PayloadError,
    ValidationError,
)
from chat_core.domain.media import decode_data_url
from chat_core.domain.models import (
    ExchangeResult,
    ExchangeState,
    ExchangeStatus,
    Message,
    VisionRequest,
)
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.response_cache import ResponseCache
from chat_core.providers import CapabilityClients
from chat_core.providers.retry import RetryState


UpdateCallback = Callable[[List[Message]], None]
Handler = Callable[[Any, str, bool, CancellationToken], Awaitable[Message]]


class ConversationOrchestrator:
    def __init__(
        self,
        clients: CapabilityClients,
        cfg=settings,
        conversation: Optional[Conversation] = None,
        store: Optional[ConversationStore] = None,
        on_update: Optional[UpdateCallback] = None,
    ):
        self._clients = clients
        self._settings = cfg
        self._conversation = conversation or Conversation()
        self._store = store
        self._on_update = on_update
        self._state = ExchangeState.IDLE
        self._token: Optional[CancellationToken] = None
        self._handlers: Dict[type, Handler] = {
            PlainCommand: self._run_completion,
            ImageCommand: self._run_image,
            AudioCommand: self._run_audio,
            VisionCommand: self._run_vision,
        }
        # 最近一次结算的对外状态（错误提示 / 非错误提示）
        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self.last_result: Optional[ExchangeResult] = None

    # ---- 只读视图 ----

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def messages(self) -> List[Message]:
        return self._conversation.messages

    @property
    def state(self) -> ExchangeState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state is not ExchangeState.IDLE

    @property
    def cache(self) -> ResponseCache:
        return self._clients.completion.cache

    # ---- 对外操作 ----

    async def send(self, text: str, *, resubmit: bool = False) -> ExchangeResult:
        """发送一条用户输入。

        Args:
            text: 原始输入（可能带 /image、/vision、/audio 前缀）。
            resubmit: 编辑后重新提交时为 True，此时不再追加新的用户消息。

        Returns:
            本次交互的 ExchangeResult；已有交互在进行时直接返回 rejected。
        """

        if self._state is not ExchangeState.IDLE:
            logger.info("Ignoring send while an exchange is in flight")
            return ExchangeResult(status=ExchangeStatus.REJECTED, code="EXCHANGE_IN_FLIGHT")
        if not text.strip():
            return ExchangeResult(status=ExchangeStatus.REJECTED, code="EMPTY_INPUT")

        # 在第一个 await 之前占用状态，保证同一时刻只有一个交互
        self._state = ExchangeState.SENDING
        token = CancellationToken()
        self._token = token
        self.error = None
        self.notice = None
        start_time = time.time()
        log_ctx: Dict[str, Any] = {"exchange_id": f"ex-{uuid4().hex}", "resubmit": resubmit}
        capability: Optional[str] = None

        try:
            try:
                command = classify(text)
                capability = command.capability
                log_ctx["capability"] = capability
                self._require_credential()
                self._log(logging.INFO, "Exchange started", log_ctx)
                handler = self._handlers[type(command)]
                message = await handler(command, text, resubmit, token)
                result = ExchangeResult(status=ExchangeStatus.SUCCESS, capability=capability, message=message)
            except ExchangeCancelledError as e:
                result = ExchangeResult(
                    status=ExchangeStatus.CANCELLED,
                    capability=capability,
                    notice=e.message,
                    code=e.code,
                )
            except BusinessError as e:
                self._prune_empty_replies()
                level = logging.INFO if isinstance(e, ValidationError) else logging.ERROR
                self._log(level, "Exchange failed", log_ctx, code=e.code, error=e.message)
                result = ExchangeResult(
                    status=ExchangeStatus.FAILED,
                    capability=capability,
                    error=e.message,
                    code=e.code,
                )
        finally:
            self._state = ExchangeState.IDLE
            self._token = None

        self.error = result.error
        self.notice = result.notice
        self.last_result = result
        self._conversation.touch()
        self._save()
        self._notify()
        self._log(
            logging.INFO,
            "Exchange settled",
            log_ctx,
            status=result.status.value,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return result

    def cancel(self) -> bool:
        """停止正在进行的交互；没有交互在进行时返回 False。"""

        if self._token is None or self._token.cancelled:
            return False
        self._token.cancel()
        return True

    async def edit_message(self, index: int, content: str) -> ExchangeResult:
        """编辑第 index 条用户消息并从该处重新提交。

        index 之后的所有消息都会被丢弃（无论内容是什么），然后以
        "不追加用户消息" 的方式重新走一遍 send 流程。
        """

        if self.is_busy:
            return ExchangeResult(status=ExchangeStatus.REJECTED, code="EXCHANGE_IN_FLIGHT")
        messages = self._conversation.messages
        if not 0 <= index < len(messages):
            raise ValidationError(code="INVALID_EDIT", message=f"No message at index {index}")
        target = messages[index]
        if not target.is_user or target.kind != "text":
            raise ValidationError(code="INVALID_EDIT", message="Only text messages written by the user can be edited")
        if not content.strip():
            raise ValidationError(code="INVALID_EDIT", message="Message cannot be empty")

        del messages[index + 1:]
        messages[index] = replace(target, content=content)
        self._notify()
        return await self.send(content, resubmit=True)

    def attach_image(self, data_url: str, caption: str = "") -> Message:
        """追加一条用户上传的图片消息，供后续 /vision 使用。

        data_url 必须是 base64 图片 data URL，MIME 类型取自其头部。
        """

        if self.is_busy:
            raise ValidationError(code="EXCHANGE_IN_FLIGHT", message="Please wait for the current response to finish")
        if not data_url:
            raise ValidationError(code="INVALID_MEDIA_REF", message="Image reference is empty")
        mime_type, _ = decode_data_url(data_url)
        if not mime_type.startswith("image/"):
            raise ValidationError(code="INVALID_MEDIA_REF", message=f"Not an image: {mime_type}")
        message = Message(
            content=caption,
            is_user=True,
            kind="image",
            media_ref=data_url,
            media_kind=mime_type,
        )
        self._append(message)
        self._conversation.touch()
        self._save()
        return message

    def clear(self) -> None:
        """清空会话（会先取消正在进行的交互）。"""

        self.cancel()
        self._conversation.messages.clear()
        self.error = None
        self.notice = None
        self._conversation.touch()
        self._save()
        self._notify()

    # ---- 各能力的处理流程 ----

    async def _run_completion(self, command: PlainCommand, text: str, resubmit: bool, token: CancellationToken) -> Message:
        self._append_user(text, resubmit)
        placeholder = Message(content="", is_user=False)
        self._append(placeholder)
        self._state = ExchangeState.STREAMING

        def on_progress(snapshot: str) -> None:
            if token.cancelled:
                return
            placeholder.content = snapshot
            self._notify()

        try:
            reply = await self._clients.completion.execute(
                command.text,
                token,
                on_progress=on_progress,
                on_retry=self._on_retry,
            )
        except ExchangeCancelledError:
            # 保留已经写入的部分内容；什么都没写入时不留空消息
            if not placeholder.content:
                self._remove(placeholder)
            raise
        except BusinessError:
            self._remove(placeholder)
            raise
        if not reply:
            self._remove(placeholder)
            raise PayloadError(code="EMPTY_RESPONSE", message="No response was generated. Please try again.")
        placeholder.content = reply
        return placeholder

    async def _run_image(self, command: ImageCommand, text: str, resubmit: bool, token: CancellationToken) -> Message:
        self._append_user(text, resubmit)
        self._state = ExchangeState.AWAITING_RESPONSE
        media = await self._clients.image.execute(command.prompt, token, on_retry=self._on_retry)
        return self._append(
            Message(
                content=command.prompt,
                is_user=False,
                kind="image",
                media_ref=media.data_url,
                media_kind=media.mime_type,
            )
        )

    async def _run_audio(self, command: AudioCommand, text: str, resubmit: bool, token: CancellationToken) -> Message:
        self._append_user(text, resubmit)
        self._state = ExchangeState.AWAITING_RESPONSE
        media = await self._clients.audio.execute(command.text, token, on_retry=self._on_retry)
        return self._append(
            Message(
                content=command.text,
                is_user=False,
                kind="audio",
                media_ref=media.data_url,
                media_kind=media.mime_type,
            )
        )

    async def _run_vision(self, command: VisionCommand, text: str, resubmit: bool, token: CancellationToken) -> Message:
        image = self._conversation.latest_image()
        if image is None:
            raise NoImageAvailableError()
        self._append_user(text, resubmit)
        self._state = ExchangeState.AWAITING_RESPONSE
        analysis = await self._clients.vision.execute(
            VisionRequest(image_ref=image.media_ref, question=command.question),
            token,
            on_retry=self._on_retry,
        )
        return self._append(Message(content=analysis, is_user=False))

    # ---- 辅助方法 ----

    def _require_credential(self) -> None:
        if not resolve_api_key(self._settings):
            raise ValidationError(
                code="MISSING_API_KEY",
                message="API key not set. Please configure your Hyperbolic API key.",
            )

    def _on_retry(self, state: RetryState) -> None:
        self.notice = f"Rate limited. Retrying in {state.next_delay:g} seconds..."
        self._notify()

    def _append_user(self, text: str, resubmit: bool) -> None:
        # 编辑重提交时，用户消息已由 edit_message 更新过
        if not resubmit:
            self._append(Message(content=text, is_user=True))

    def _append(self, message: Message) -> Message:
        self._conversation.messages.append(message)
        self._notify()
        return message

    def _remove(self, message: Message) -> None:
        messages = self._conversation.messages
        for i, existing in enumerate(messages):
            if existing is message:
                del messages[i]
                self._notify()
                return

    def _prune_empty_replies(self) -> None:
        messages = self._conversation.messages
        while messages and not messages[-1].is_user and not messages[-1].content and not messages[-1].media_ref:
            messages.pop()

    def _notify(self) -> None:
        if self._on_update:
            self._on_update(self._conversation.messages)

    def _save(self) -> None:
        if self._store is not None:
            self._store.save_conversation(self._conversation)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
