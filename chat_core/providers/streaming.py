"""事件流（SSE）解码器。

把补全端点返回的 `data: {json}` 分块流解析为有序的累计文本快照：

1. 每个数据块按增量方式解码为文本（UTF-8 多字节字符可能被拆在两个块中），
   不完整的最后一行留到下一个块拼接。
2. 只处理 `data:` 行；`[DONE]` 结束标记直接跳过，不做 JSON 解析。
3. 取 choices[0].delta.content 追加到累计文本，产出去掉首尾空白的累计快照。
4. 无法解析的行记日志后跳过，不会中断整个流。

累计文本只追加不改写，所以快照长度单调不减。
"""

import codecs
import json
from typing import Any, AsyncIterable, AsyncIterator, List, Optional, Union

from chat_core.infrastructure.logging.logger import logger


DONE_SENTINEL = "[DONE]"

Chunk = Union[bytes, str]


class StreamDecoder:
    """单次流的解码状态。每次请求新建一个实例，不支持中途恢复。"""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""
        self._accumulated = ""
        self._finished = False

    @property
    def text(self) -> str:
        """当前的完整回答（去首尾空白），流结束后即为最终结果。"""

        return self._accumulated.strip()

    def feed(self, chunk: Chunk) -> List[str]:
        """喂入一个数据块，返回由此产生的新快照（可能为空）。"""

        if isinstance(chunk, bytes):
            data = self._decoder.decode(chunk)
        else:
            data = chunk
        self._pending += data
        *lines, self._pending = self._pending.split("\n")
        return self._consume(lines)

    def finish(self) -> List[str]:
        """流结束：处理缓冲区里最后一行（没有换行结尾的情况）。"""

        if self._finished:
            return []
        self._finished = True
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return self._consume([tail]) if tail else []

    async def decode(self, chunks: AsyncIterable[Chunk]) -> AsyncIterator[str]:
        """逐块消费异步数据流，按到达顺序产出累计快照。"""

        async for chunk in chunks:
            for snapshot in self.feed(chunk):
                yield snapshot
        for snapshot in self.finish():
            yield snapshot

    def _consume(self, lines: List[str]) -> List[str]:
        snapshots: List[str] = []
        for raw in lines:
            line = raw.rstrip("\r")
            if not line.startswith("data:"):
                continue
            data_str = line[5:].strip()
            if not data_str or data_str == DONE_SENTINEL:
                continue
            try:
                payload = json.loads(data_str)
            except json.JSONDecodeError:
                logger.warning(
                    "Skipping malformed stream line",
                    extra={"extra": {"line_preview": data_str[:80]}},
                )
                continue
            delta = self._extract_delta(payload)
            if not delta:
                continue
            self._accumulated += delta
            snapshots.append(self._accumulated.strip())
        return snapshots

    @staticmethod
    def _extract_delta(payload: Any) -> Optional[str]:
        if not isinstance(payload, dict):
            return None
        choices = payload.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        return content if isinstance(content, str) else None
