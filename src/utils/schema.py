"""提供 JSON Schema 加载、组合与配置文档校验的工具函数。"""  # 模块文档说明。
# 导入 json 以解析 schema 文件内容。
import json
# 导入 pathlib.Path 以定位仓库中的 schemas 目录。
from pathlib import Path
# 导入 typing.Dict 以标注缓存字典类型。
from typing import Any, Dict, Tuple

# 从 jsonschema 导入校验器与异常类型。
from jsonschema import Draft202012Validator, ValidationError

# 预先解析 schema 目录，避免每次调用都重新计算。
SCHEMA_DIR = Path(__file__).resolve().parents[2] / "schemas"
# 定义支持的 schema 名称到文件名的映射，便于统一管理。
SCHEMA_FILES = {
    "provider_descriptor": "provider_descriptor.schema.json",
}
# 使用字典缓存已加载的 schema，避免重复读取磁盘。
_SCHEMA_CACHE: Dict[str, dict] = {}
# 按 (文档类型, 注册表键) 缓存编译后的校验器。
_VALIDATOR_CACHE: Dict[Tuple[str, str], Draft202012Validator] = {}


def load_schema(name: str) -> dict:
    """加载指定名称的 JSON Schema，并在内存中缓存。"""  # 函数文档说明。

    key = name.strip().lower()
    if key not in SCHEMA_FILES:
        raise KeyError(f"Unknown schema: {name}")
    if key in _SCHEMA_CACHE:
        return _SCHEMA_CACHE[key]
    with (SCHEMA_DIR / SCHEMA_FILES[key]).open("r", encoding="utf-8") as handle:
        schema = json.load(handle)
    _SCHEMA_CACHE[key] = schema
    return schema


def document_schema(registry_key: str, kind: str) -> dict:
    """为给定注册表键组合渲染文档或目标文档的 schema。

    rendered 文档必须包含注册表，且每个条目都满足 provider 描述符 schema；
    target 文档由宿主应用维护，只约束顶层为对象、注册表为对象或 null，条目内容不做要求。
    """

    if kind == "rendered":
        registry_schema = {"type": "object", "additionalProperties": load_schema("provider_descriptor")}
        return {
            "type": "object",
            "required": [registry_key],
            "properties": {registry_key: registry_schema},
        }
    if kind == "target":
        return {
            "type": "object",
            "properties": {registry_key: {"type": ["object", "null"]}},
        }
    raise KeyError(f"Unknown document kind: {kind}")


def _get_validator(registry_key: str, kind: str) -> Draft202012Validator:
    """获取编译后的 Draft2020-12 校验器实例并缓存。"""  # 内部工具函数说明。

    cache_key = (kind, registry_key)
    if cache_key not in _VALIDATOR_CACHE:
        _VALIDATOR_CACHE[cache_key] = Draft202012Validator(document_schema(registry_key, kind))
    return _VALIDATOR_CACHE[cache_key]


def describe_error(error: ValidationError) -> str:
    """将 ValidationError 转为带 JSON 路径的单行描述。"""  # 函数文档说明。

    location = "/".join(str(part) for part in error.absolute_path) or "<root>"
    return f"{location}: {error.message}"


def validate_rendered(document: Any, registry_key: str) -> None:
    """校验渲染后的候选文档，不合法时抛出 ValidationError。"""  # 函数文档说明。

    _get_validator(registry_key, "rendered").validate(document)


def validate_target(document: Any, registry_key: str) -> None:
    """校验宿主应用已有的目标文档结构。"""  # 函数文档说明。

    _get_validator(registry_key, "target").validate(document)
