"""模板渲染：将 {{NAME}} 占位符替换为参数值并生成候选配置文档。"""  # 模块说明。
from __future__ import annotations  # 启用前向注解以支持联合类型语法。

import json  # 导入 json 以解析模板与渲染结果。
import os  # 导入 os 以接受 PathLike 参数。
import re  # 导入 re 以匹配占位符。
from dataclasses import dataclass, field  # 导入 dataclass 封装渲染结果。
from typing import Any, Dict, List  # 导入类型注解。

from jsonschema import ValidationError  # 渲染结果未通过结构校验时的异常类型。

from src.deploy.parameters import ParameterSet, is_path_like  # 参数集合与路径类参数判断。
from src.utils.errors import TemplateError  # 渲染失败统一抛出的致命异常。
from src.utils.schema import describe_error, validate_rendered  # 渲染文档的结构校验。

PLACEHOLDER_PATTERN = re.compile(r"\{\{([A-Za-z_][A-Za-z0-9_]*)\}\}")  # 占位符语法，不与 JSON 语法冲突。
RENDER_MODES = ("structured", "text")  # 支持的渲染模式。


@dataclass
class RenderResult:
    """渲染产物：解析后的文档与未在参数集合中出现的占位符名称。"""  # 类说明。

    document: Dict[str, Any]  # 通过结构校验的候选文档。
    unresolved: List[str] = field(default_factory=list)  # 解析为空字符串的占位符名称。


def find_placeholders(text: str) -> List[str]:
    """按出现顺序返回文本中的占位符名称（去重）。"""  # 函数说明。

    seen: Dict[str, None] = {}
    for match in PLACEHOLDER_PATTERN.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


def escape_path_value(value: str) -> str:
    """将路径值中的反斜杠加倍，使其在 JSON 字符串字面量中保持原义。"""  # 函数说明。

    return value.replace("\\", "\\\\")


def render_text(template_text: str, params: ParameterSet, path_suffixes: List[str]) -> str:
    """在序列化文本上一次性替换全部占位符，替换结果不会被再次扫描。"""  # 函数说明。

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        value = params.resolve(name)
        if is_path_like(name, path_suffixes):  # 仅路径类参数执行转义。
            value = escape_path_value(value)
        return value

    return PLACEHOLDER_PATTERN.sub(_substitute, template_text)


def _substitute_string(value: str, params: ParameterSet) -> str:
    """替换单个字符串中的全部占位符，不做任何转义。"""  # 函数说明。

    return PLACEHOLDER_PATTERN.sub(lambda match: params.resolve(match.group(1)), value)


def render_structured(node: Any, params: ParameterSet) -> Any:
    """遍历已解析的模板树，对任意深度的字符串（包括对象键）执行替换。"""  # 函数说明。

    if isinstance(node, dict):
        rendered: Dict[str, Any] = {}
        for key, value in node.items():
            name = _substitute_string(key, params)
            if name in rendered:  # 两个键渲染成同名时不允许静默丢弃其中一个。
                raise TemplateError(f"Template keys collide after substitution: {key!r} renders to existing key {name!r}")
            rendered[name] = render_structured(value, params)
        return rendered
    if isinstance(node, list):
        return [render_structured(item, params) for item in node]
    if isinstance(node, str):
        return _substitute_string(node, params)
    return node  # 数字、布尔与 null 原样保留。


def parse_document(text: str, label: str) -> Any:
    """解析 JSON 文本，失败时抛出携带原始诊断信息的 TemplateError。"""  # 函数说明。

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise TemplateError(f"{label} is not valid JSON (line {exc.lineno}, column {exc.colno}): {exc.msg}") from exc


def load_template(path: str | os.PathLike[str]) -> str:
    """读取模板文本，任何读取错误都直接向上传播。"""  # 函数说明。

    with open(path, "r", encoding="utf-8") as handle:
        return handle.read()


def render_template(
    template_text: str,
    params: ParameterSet,
    *,
    registry_key: str,
    mode: str = "structured",
    path_suffixes: List[str] | None = None,
) -> RenderResult:
    """渲染模板并校验结果结构，任何失败都在写入前以 TemplateError 中止。

    structured 模式先解析模板、在树上替换、最后只序列化一次，不需要转义；
    text 模式保留纯文本替换语义，路径类参数的反斜杠会被加倍。
    """

    if mode not in RENDER_MODES:
        raise TemplateError(f"Unknown template mode: {mode}")
    suffixes = list(path_suffixes or [])
    unresolved = [name for name in find_placeholders(template_text) if name not in params]
    if mode == "text":
        document = parse_document(render_text(template_text, params, suffixes), "Rendered template")
    else:
        document = render_structured(parse_document(template_text, "Template"), params)
    try:
        validate_rendered(document, registry_key)
    except ValidationError as exc:
        raise TemplateError(f"Rendered template does not match the provider schema: {describe_error(exc)}") from exc
    return RenderResult(document=document, unresolved=unresolved)
