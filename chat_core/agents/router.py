"""命令路由：把用户输入分类为某个能力对应的命令。

按固定优先级检查（不区分大小写）前缀：/image、/vision、/audio，
都不匹配时作为普通文本补全。前缀之后（去掉一个分隔空格）的剩余文本
就是该能力的参数；参数为空或全是空白时直接返回校验错误，不发请求。

路由是无状态的，每次 send（包括编辑后重新提交）都会重新分类。
"""

from dataclasses import dataclass
from typing import Callable, Tuple, Union

from chat_core.domain.exceptions import ValidationError
from chat_core.providers.registry import AUDIO, COMPLETION, IMAGE, VISION


@dataclass(frozen=True)
class ImageCommand:
    prompt: str
    capability = IMAGE


@dataclass(frozen=True)
class VisionCommand:
    question: str
    capability = VISION


@dataclass(frozen=True)
class AudioCommand:
    text: str
    capability = AUDIO


@dataclass(frozen=True)
class PlainCommand:
    text: str
    capability = COMPLETION


Command = Union[ImageCommand, VisionCommand, AudioCommand, PlainCommand]


# (前缀, 命令类型, 参数为空时的提示)，顺序即优先级
COMMAND_PREFIXES: Tuple[Tuple[str, Callable[[str], Command], str], ...] = (
    ("/image", ImageCommand, "Please provide a prompt for image generation."),
    ("/vision", VisionCommand, "Please provide a question about the image."),
    ("/audio", AudioCommand, "Please provide text for audio generation."),
)


def classify(text: str) -> Command:
    """把原始输入分类为命令；带前缀但参数为空时抛出 ValidationError。"""

    lowered = text.lower()
    for prefix, factory, empty_hint in COMMAND_PREFIXES:
        if not lowered.startswith(prefix):
            continue
        argument = text[len(prefix):]
        if argument.startswith(" "):
            argument = argument[1:]
        if not argument.strip():
            raise ValidationError(code="EMPTY_ARGUMENT", message=empty_hint, command=prefix)
        return factory(argument)
    return PlainCommand(text)
