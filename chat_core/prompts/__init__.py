"""系统提示词与示例问题。

补全请求使用的固定 system prompt 以 Markdown 文本放在本目录下，
由 load_system_prompt() 读取，用于构造 ChatMessage(role="system")。
"""

from functools import lru_cache
from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent

EXAMPLE_PROMPTS = (
    "Tell me about the latest advancements in AI",
    "How does quantum computing work?",
    "Explain the theory of relativity",
    "What are the best practices in software development?",
    "Describe the process of photosynthesis",
    "What are the key principles of machine learning?",
    "How do black holes work?",
    "Explain blockchain technology",
)


@lru_cache(maxsize=None)
def load_system_prompt(name: str = "system") -> str:
    """按名称加载系统提示词文本（默认 system.md）。"""

    fname = PROMPTS_DIR / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip()
