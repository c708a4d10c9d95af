"""配置合并：读取已有目标文档、按需备份、合并候选文档并持久化。"""  # 模块说明。
from __future__ import annotations  # 启用前向注解以支持联合类型语法。

import copy  # 导入 copy 以深拷贝文档，避免修改调用方数据。
import json  # 导入 json 以解析已有目标文档。
import time  # 导入 time 以生成毫秒级备份时间戳。
from dataclasses import dataclass, field  # 导入 dataclass 封装合并结果。
from typing import Any, Callable, Dict, List  # 导入类型注解。

from jsonschema import ValidationError  # 目标文档结构不合法时的异常类型。

from src.deploy.store import DocumentStore  # 目标文档的读写接口。
from src.utils.errors import TargetCorruptError  # 已有文档损坏时的致命异常。
from src.utils.io import dump_json_text  # 统一的 JSON 序列化格式。
from src.utils.logging import StructuredLogger  # 结构化日志器类型。
from src.utils.schema import describe_error, validate_target  # 目标文档结构校验。


@dataclass
class ProvisionResult:
    """一次 provision 的结果摘要，供 CLI 输出与测试断言使用。"""  # 类说明。

    target: str  # 目标文档位置。
    document: Dict[str, Any]  # 已写入的最终文档。
    created: bool  # 目标文档此前是否不存在。
    backup: str | None = None  # 新建备份的位置，未备份时为 None。
    backup_error: str | None = None  # 备份失败的原因，成功或无需备份时为 None。
    added: List[str] = field(default_factory=list)  # 新增的 provider 名称。
    replaced: List[str] = field(default_factory=list)  # 被整体替换的 provider 名称。
    pruned: List[str] = field(default_factory=list)  # 按保留上限删除的旧备份。


def unix_millis() -> int:
    """返回当前 Unix 毫秒时间戳。"""  # 函数说明。
    return time.time_ns() // 1_000_000


def empty_shell(registry_key: str) -> Dict[str, Any]:
    """返回目标文档缺失时使用的空壳文档。"""  # 函数说明。
    return {registry_key: {}}


def registry_of(document: Dict[str, Any], registry_key: str) -> Dict[str, Any]:
    """读取注册表映射，键缺失或为 null 时视为空映射。"""  # 函数说明。
    registry = document.get(registry_key)
    return registry if isinstance(registry, dict) else {}


def parse_existing(raw: str | None, registry_key: str, location: str) -> Dict[str, Any]:
    """解析已有目标文档：缺失视为空壳，无法解析或结构不符则抛出 TargetCorruptError。"""  # 函数说明。

    if raw is None:
        return empty_shell(registry_key)
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise TargetCorruptError(
            f"Existing config {location} is not valid JSON (line {exc.lineno}, column {exc.colno}): {exc.msg}"
        ) from exc
    try:
        validate_target(document, registry_key)
    except ValidationError as exc:
        raise TargetCorruptError(f"Existing config {location} has an unexpected structure: {describe_error(exc)}") from exc
    return document


def merge_documents(existing: Dict[str, Any], rendered: Dict[str, Any], registry_key: str) -> Dict[str, Any]:
    """合并两个文档：注册表按 provider 名称整体覆盖，其余顶层键保留已有文档的值。

    已有文档独有的 provider 原样保留并维持原顺序；同名 provider 以渲染文档为准，
    不做字段级拼接。
    """

    final = copy.deepcopy(existing)
    merged = copy.deepcopy(registry_of(existing, registry_key))
    for name, descriptor in registry_of(rendered, registry_key).items():
        merged[name] = copy.deepcopy(descriptor)
    final[registry_key] = merged
    return final


def prune_backups(store: DocumentStore, retain: int, logger: StructuredLogger | None = None) -> List[str]:
    """保留最新的 retain 份备份并删除更旧的备份；retain 为 0 时不做任何清理。"""  # 函数说明。

    if retain <= 0:
        return []
    backups = store.list_backups()
    stale = backups[: max(0, len(backups) - retain)]
    removed: List[str] = []
    for location in stale:
        try:
            store.delete_backup(location)
        except OSError as exc:
            if logger is not None:
                logger.warning("failed to prune backup", backup=location, error=str(exc))
            continue
        removed.append(location)
    return removed


def provision(
    store: DocumentStore,
    rendered: Dict[str, Any],
    *,
    registry_key: str,
    logger: StructuredLogger | None = None,
    now_ms: Callable[[], int] = unix_millis,
    retain: int = 0,
) -> ProvisionResult:
    """读取、备份、合并并写入目标文档。

    任何解析或读取错误都在写入前抛出；备份失败只记录警告，不阻塞合并。
    """

    try:
        raw = store.read_raw()
    except UnicodeDecodeError as exc:
        raise TargetCorruptError(f"Existing config {store.location} is not valid UTF-8: {exc}") from exc
    existing = parse_existing(raw, registry_key, store.location)
    existing_registry = registry_of(existing, registry_key)
    result = ProvisionResult(target=store.location, document={}, created=raw is None)

    if existing_registry:  # 只有已有 provider 条目时才值得备份。
        try:
            result.backup = store.write_backup(raw or "", now_ms())
        except OSError as exc:
            result.backup_error = str(exc)
            if logger is not None:
                logger.warning("backup failed, continuing without one", target=store.location, error=str(exc))
        else:
            if logger is not None:
                logger.info("backed up existing config", backup=result.backup)

    final = merge_documents(existing, rendered, registry_key)
    for name in registry_of(rendered, registry_key):
        (result.replaced if name in existing_registry else result.added).append(name)
    store.write_raw(dump_json_text(final))
    result.document = final
    if logger is not None:
        logger.info(
            "target config written",
            target=store.location,
            added=result.added,
            replaced=result.replaced,
            preserved=len(existing_registry) - len(result.replaced),
        )

    if result.backup is not None:
        result.pruned = prune_backups(store, retain, logger)
    return result
