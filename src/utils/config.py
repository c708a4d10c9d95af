"""部署工具配置：分层加载、规范化、校验与快照导出工具集合。"""  # 模块说明。
from __future__ import annotations  # 启用前向注解以提升类型兼容性。

import copy  # 导入 copy 以执行深拷贝避免引用共享。
import os  # 导入 os 以访问环境变量与路径扩展。
from dataclasses import dataclass  # 导入 dataclass 以封装结果结构。
from datetime import datetime, timezone  # 导入 datetime 用于生成时间戳。
from pathlib import Path  # 导入 Path 统一路径处理。
from typing import Any, Dict, Iterable, Mapping  # 导入类型注解辅助代码可读性。

import yaml  # 导入 PyYAML 以读取/写出 YAML 文件。

from src.utils.io import atomic_write_text  # 复用原子写入工具以保存配置快照。

ENV_PREFIX = "MCPDEPLOY_"  # 所有环境变量需以此前缀开头才会被解析。
TEMPLATE_MODES = {"structured", "text"}  # 支持的模板渲染模式。
LOG_FORMATS = {"human", "jsonl"}  # 支持的日志格式。
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}  # 支持的日志等级。


@dataclass
class ConfigBundle:
    """封装配置加载结果，包含配置体与来源映射。"""  # 数据类说明。

    config: Dict[str, Any]  # 最终合并并经过规范化的配置字典。
    sources: Dict[str, Any]  # 与 config 对应的来源追踪树，叶子为字符串。
    user_path: str | None  # 实际读取的用户配置路径，未读取时为 None。


class ConfigError(ValueError):
    """工具配置取值非法时抛出，消息中带有键路径与来源层。"""  # 异常说明。


def package_root() -> Path:
    """返回工具自身的仓库根目录（config/ 与 schemas/ 所在位置）。"""  # 工具函数说明。

    return Path(__file__).resolve().parents[2]  # config.py 位于 src/utils，下两级即仓库根。


def _load_yaml(path: Path) -> Dict[str, Any]:
    """读取一层 YAML 配置；空文件视为空映射，非映射顶层报错。"""  # 工具函数说明。

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)  # 使用 safe_load 避免执行任意代码。
    if data is None:
        return {}
    if not isinstance(data, dict):  # 顶层必须是映射。
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def _build_source_tree(node: Any, label: str) -> Any:
    """构造与 node 同形的来源树，叶子统一标记为 label。"""  # 工具函数说明。

    if isinstance(node, dict):
        return {key: _build_source_tree(value, label) for key, value in node.items()}
    return label  # 标量与列表直接返回标签。


def _deep_merge(base: Dict[str, Any], incoming: Dict[str, Any], sources: Dict[str, Any], incoming_sources: Any) -> None:
    """把 incoming 深度合并进 base，同时把来源标签写入 sources。"""  # 工具函数说明。

    for key, value in incoming.items():
        source_info = incoming_sources.get(key) if isinstance(incoming_sources, dict) else incoming_sources
        if isinstance(value, dict):  # 字典值需要递归处理。
            base_child = base.get(key)
            source_child = sources.get(key)
            if not isinstance(base_child, dict):  # 旧值不是字典时直接替换为新字典。
                base_child = {}
            if not isinstance(source_child, dict):
                source_child = {}
            base[key] = base_child
            sources[key] = source_child
            if isinstance(source_info, str):  # 来源只是标签时扩展为整棵树。
                source_info = _build_source_tree(value, source_info)
            _deep_merge(base_child, value, source_child, source_info)
            continue
        if value is None and key in base and base[key] is not None:  # None 不会覆盖已有非空值。
            continue
        base[key] = copy.deepcopy(value)  # 对标量/列表执行深拷贝后写入。
        sources[key] = source_info


def _parse_scalar(value: str) -> Any:
    """环境变量与 --set 的取值推断：true/false、null、整数、浮点，其余保持字符串。"""  # 工具函数说明。

    lowered = value.strip().lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"null", "none"}:
        return None
    try:
        if lowered.startswith("0") and lowered not in {"0", "0.0"}:  # 以 0 开头的字符串保持原样避免八进制误判。
            raise ValueError
        return int(lowered)
    except ValueError:
        try:
            return float(lowered)
        except ValueError:
            return value.strip()


def _keypath_to_tree(keypath: Iterable[str], value: Any) -> Dict[str, Any]:
    """['backup', 'retain'] + 值 → {'backup': {'retain': 值}}。"""  # 工具函数说明。

    result: Dict[str, Any] = {}
    cursor = result
    components = list(keypath)
    for index, part in enumerate(components):
        if index == len(components) - 1:
            cursor[part] = value
        else:
            cursor = cursor.setdefault(part, {})
    return result


def _collect_env_overrides(env: Mapping[str, str]) -> tuple[Dict[str, Any], Dict[str, Any]]:
    """从环境映射中提取 MCPDEPLOY_* 变量并构造值树与来源树。"""  # 工具函数说明。

    values: Dict[str, Any] = {}
    value_sources: Dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        trimmed = key[len(ENV_PREFIX) :]
        path = [segment.lower() for segment in trimmed.split("__") if segment]  # 双下划线表示层级。
        if not path:
            continue
        tree = _keypath_to_tree(path, _parse_scalar(raw_value))
        source_tree = _keypath_to_tree(path, f"env:{key}")
        _deep_merge(values, tree, value_sources, source_tree)
    return values, value_sources


def _expand_path(value: str) -> str:
    """展开用户目录与环境变量，保持平台兼容。"""  # 工具函数说明。

    return os.path.expanduser(os.path.expandvars(value.strip()))


def _normalize_config(config: Dict[str, Any]) -> None:
    """就地规范化：模式与格式转小写、日志等级转大写、路径展开 ~ 与环境变量。"""  # 工具函数说明。

    template = config.setdefault("template", {})
    mode = template.get("mode")
    if isinstance(mode, str):
        template["mode"] = mode.strip().lower()
    logging_cfg = config.setdefault("logging", {})
    if isinstance(logging_cfg.get("format"), str):
        logging_cfg["format"] = logging_cfg["format"].strip().lower()
    if isinstance(logging_cfg.get("level"), str):
        logging_cfg["level"] = logging_cfg["level"].strip().upper()
    target = config.setdefault("target", {})
    if isinstance(target.get("registry_key"), str):
        target["registry_key"] = target["registry_key"].strip()
    path_like_keys = [  # 需要展开 ~ 与环境变量的路径字段。
        ["paths", "project_root"],
        ["paths", "env_file"],
        ["paths", "template"],
        ["target", "path"],
        ["logging", "file"],
    ]
    for path in path_like_keys:
        parent = config.get(path[0])
        if not isinstance(parent, dict):
            continue
        value = parent.get(path[1])
        if isinstance(value, str) and value.strip():
            parent[path[1]] = _expand_path(value)
    retain = config.setdefault("backup", {}).get("retain")
    if isinstance(retain, float) and retain.is_integer():  # 环境变量可能给出 3.0 之类的取值。
        config["backup"]["retain"] = int(retain)


def _source_for_path(path: Iterable[str], sources: Dict[str, Any]) -> str:
    """返回键路径对应的来源标签，找不到时为 unknown。"""  # 工具函数说明。

    cursor: Any = sources
    for part in path:
        if not isinstance(cursor, dict):
            return "unknown"
        cursor = cursor.get(part)
        if cursor is None:
            return "unknown"
    if isinstance(cursor, str):
        return cursor
    return "unknown"


def _assert_condition(condition: bool, path: list[str], message: str, value: Any, sources: Dict[str, Any]) -> None:
    """条件不成立时抛出 ConfigError，消息包含键路径、取值与来源。"""  # 工具函数说明。

    if condition:
        return
    dotted = ".".join(path)
    origin = _source_for_path(path, sources)
    raise ConfigError(f"Invalid value for {dotted}: {message} (value={value!r}, source={origin})")


def _is_command(value: Any) -> bool:
    """判断值是否为非空字符串列表形式的命令。"""  # 工具函数说明。

    return isinstance(value, list) and bool(value) and all(isinstance(part, str) and part for part in value)


def _validate_config(config: Dict[str, Any], sources: Dict[str, Any]) -> None:
    """校验模板模式、注册表键、provider、备份保留数、外部命令与日志设置。"""  # 工具函数说明。

    mode = config.get("template", {}).get("mode")
    _assert_condition(mode in TEMPLATE_MODES, ["template", "mode"], "mode must be 'structured' or 'text'", mode, sources)
    suffixes = config.get("template", {}).get("path_suffixes")
    _assert_condition(
        isinstance(suffixes, list) and all(isinstance(item, str) and item for item in suffixes),
        ["template", "path_suffixes"],
        "path_suffixes must be a list of non-empty strings",
        suffixes,
        sources,
    )
    registry_key = config.get("target", {}).get("registry_key")
    _assert_condition(
        isinstance(registry_key, str) and bool(registry_key),
        ["target", "registry_key"],
        "registry_key must be a non-empty string",
        registry_key,
        sources,
    )
    registration = config.get("target", {}).get("registration_name")
    _assert_condition(
        isinstance(registration, str) and bool(registration),
        ["target", "registration_name"],
        "registration_name must be a non-empty string",
        registration,
        sources,
    )
    providers = config.get("providers")
    _assert_condition(isinstance(providers, dict), ["providers"], "providers must be a mapping", providers, sources)
    for name, provider in providers.items():
        _assert_condition(isinstance(provider, dict), ["providers", name], "provider must be a mapping", provider, sources)
        for field in ("project_dir", "mcp_url"):
            value = provider.get(field)
            _assert_condition(
                isinstance(value, str) and bool(value.strip()),
                ["providers", name, field],
                f"{field} must be a non-empty string",
                value,
                sources,
            )
    retain = config.get("backup", {}).get("retain")
    _assert_condition(
        isinstance(retain, int) and not isinstance(retain, bool) and retain >= 0,
        ["backup", "retain"],
        "retain must be an integer >= 0 (0 keeps every backup)",
        retain,
        sources,
    )
    for key in ("outdated_command", "update_command"):
        command = config.get("update", {}).get(key)
        _assert_condition(_is_command(command), ["update", key], "command must be a non-empty list of strings", command, sources)
    cli_command = config.get("validate", {}).get("cli_command")
    _assert_condition(_is_command(cli_command), ["validate", "cli_command"], "command must be a non-empty list of strings", cli_command, sources)
    log_format = config.get("logging", {}).get("format")
    _assert_condition(log_format in LOG_FORMATS, ["logging", "format"], "format must be 'human' or 'jsonl'", log_format, sources)
    log_level = config.get("logging", {}).get("level")
    _assert_condition(log_level in LOG_LEVELS, ["logging", "level"], "unknown log level", log_level, sources)


def parse_cli_set_items(items: Iterable[str]) -> Dict[str, Any]:
    """把 --set section.key=value 列表转换为嵌套覆盖字典。"""  # 公共函数说明。

    overrides: Dict[str, Any] = {}
    for raw in items:
        if "=" not in raw:
            raise ConfigError(f"Invalid --set entry '{raw}', expected KEY=VALUE")
        key, value = raw.split("=", 1)  # 仅拆分首个等号以允许值中包含等号。
        path = [segment.strip().lower() for segment in key.split(".") if segment.strip()]
        if not path:
            continue
        tree = _keypath_to_tree(path, _parse_scalar(value))
        _deep_merge(overrides, tree, {}, "cli:set")
    return overrides


def load_and_merge_config(
    cli_overrides: Dict[str, Any] | None = None,
    cli_set_overrides: Dict[str, Any] | None = None,
    config_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ConfigBundle:
    """按照默认→用户→环境→CLI 顺序加载配置并返回结果。"""  # 主函数说明。

    root = package_root()
    default_path = root / "config" / "default.yaml"
    if not default_path.exists():
        raise FileNotFoundError(f"Default config not found: {default_path}")
    config = _load_yaml(default_path)
    sources = _build_source_tree(config, f"default:{default_path}")
    user_path = Path(config_path) if config_path else root / "config" / "user.yaml"
    if config_path and not user_path.exists():  # 显式指定但缺失时报错，默认路径缺失则忽略。
        raise ConfigError(f"Config file not found: {user_path}")
    loaded_user: str | None = None
    if user_path.exists():
        user_config = _load_yaml(user_path)
        _deep_merge(config, user_config, sources, _build_source_tree(user_config, f"user:{user_path}"))
        loaded_user = str(user_path)
    env_values, env_sources = _collect_env_overrides(os.environ if environ is None else environ)
    if env_values:
        _deep_merge(config, env_values, sources, env_sources)
    if cli_overrides:
        _deep_merge(config, cli_overrides, sources, _build_source_tree(cli_overrides, "cli:args"))
    if cli_set_overrides:
        _deep_merge(config, cli_set_overrides, sources, _build_source_tree(cli_set_overrides, "cli:set"))
    _normalize_config(config)
    _validate_config(config, sources)
    meta = config.setdefault("meta", {})
    meta_sources = sources.setdefault("meta", {})
    meta["config_generated_at"] = datetime.now(timezone.utc).isoformat()  # 写入生成时间戳。
    meta_sources["config_generated_at"] = "runtime:generated"
    return ConfigBundle(config=config, sources=sources, user_path=loaded_user)


def resolve_project_path(config: Dict[str, Any], value: str) -> Path:
    """将相对路径解析到项目根目录下，绝对路径保持不变。"""  # 公共函数说明。

    candidate = Path(value)
    if candidate.is_absolute():
        return candidate
    return project_root(config) / candidate


def project_root(config: Dict[str, Any]) -> Path:
    """返回部署项目根目录：显式配置优先，否则为仓库根。"""  # 公共函数说明。

    configured = config.get("paths", {}).get("project_root")
    if isinstance(configured, str) and configured:
        return Path(configured).resolve()
    return package_root()


def render_effective_config(bundle: ConfigBundle, include_sources: bool = True) -> str:
    """生成 --print-config 使用的 YAML 快照，每个叶子可附带来源注释。"""  # 导出函数说明。

    def _render(node: Any, source_node: Any, indent: int) -> list[str]:
        lines: list[str] = []
        for key in sorted(node.keys()):  # 排序以稳定输出。
            value = node[key]
            child_source = source_node.get(key) if isinstance(source_node, dict) else source_node
            prefix = " " * indent
            if isinstance(value, dict) and value:
                lines.append(f"{prefix}{key}:")
                lines.extend(_render(value, child_source, indent + 2))
                continue
            rendered = yaml.safe_dump(value, default_flow_style=True).strip()
            if rendered.endswith("\n..."):  # safe_dump 对标量会追加文档结束标记。
                rendered = rendered[: -len("\n...")]
            elif rendered.endswith("..."):
                rendered = rendered[: -len("...")].strip()
            line = f"{prefix}{key}: {rendered}"
            if include_sources and isinstance(child_source, str):
                line += f"  # {child_source}"
            lines.append(line)
        return lines

    return "\n".join(_render(bundle.config, bundle.sources, 0)) + "\n"


def save_config(bundle: ConfigBundle, path: str | os.PathLike[str], include_sources: bool = True) -> None:
    """--save-config：原子写出配置快照。"""  # 导出函数说明。

    atomic_write_text(path, render_effective_config(bundle, include_sources=include_sources))
