"""data URL 工具：图片/音频都以自包含的 data:<mime>;base64,<payload> 形式传递。"""

import base64
import binascii
from typing import Tuple

from chat_core.domain.exceptions import ValidationError


def wrap_base64(payload: str, mime_type: str) -> str:
    """把端点返回的 base64 字符串包装成 data URL。"""

    return f"data:{mime_type};base64,{payload}"


def encode_data_url(raw: bytes, mime_type: str) -> str:
    return wrap_base64(base64.b64encode(raw).decode("ascii"), mime_type)


def decode_data_url(ref: str) -> Tuple[str, bytes]:
    """解析 data URL，返回 (mime_type, 原始字节)。"""

    if not ref.startswith("data:") or ";base64," not in ref:
        raise ValidationError(code="INVALID_MEDIA_REF", message="Not a base64 data URL")
    header, payload = ref[5:].split(";base64,", 1)
    try:
        return header, base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValidationError(code="INVALID_MEDIA_REF", message=f"Invalid base64 payload: {e}")
