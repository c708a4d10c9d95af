"""参数来源：读取 KEY=VALUE 参数文件，并与内置默认值组合成参数集合。"""  # 模块说明。
from __future__ import annotations  # 启用前向注解以支持联合类型语法。

import os  # 导入 os 以拼接路径与读取用户目录。
from dataclasses import dataclass, field  # 导入 dataclass 封装参数来源与参数集合。
from pathlib import Path  # 导入 Path 统一路径处理。
from typing import Any, Dict, Iterator, Mapping  # 导入类型注解。

from src.utils.errors import ParameterSourceMissing  # 参数文件缺失时使用的非致命异常。
from src.utils.io import read_text_if_exists  # 缺失返回 None、其余错误向上传播的读取工具。

DEBUG_KEY = "DEBUG"  # 调试开关参数名。
INSTALL_DIR_KEY = "INSTALL_DIR"  # 安装目录参数名。
ORCHESTRATOR_KEY = "ORCHESTRATOR_PATH"  # 编排器路径参数名，由项目根推导。


def parse_parameter_text(text: str) -> Dict[str, str]:
    """解析 KEY=VALUE 文本：忽略空行与 # 注释，首个等号分隔键值，两端去空白。"""  # 函数说明。

    result: Dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):  # 跳过空行与注释。
            continue
        key, _, value = stripped.partition("=")  # 之后的等号都属于值。
        key = key.strip()
        if not key:  # 形如 "=value" 的行没有键名，直接忽略。
            continue
        result[key] = value.strip()
    return result


@dataclass
class ParameterSource:
    """一次运行中只读取一次的参数文件内容。"""  # 类说明。

    path: Path  # 参数文件路径。
    values: Dict[str, str] = field(default_factory=dict)  # 文件中解析出的键值。
    found: bool = True  # 文件是否存在。

    def resolve(self, key: str, default: str = "") -> str:
        """返回文件中的值；键缺失或值为空时返回默认值。"""  # 方法说明。
        value = self.values.get(key, "")
        return value if value else default


def load_parameter_source(path: str | os.PathLike[str]) -> ParameterSource:
    """读取参数文件；文件缺失时返回 found=False 的空来源，其余读取错误直接抛出。"""  # 函数说明。

    source_path = Path(path)
    text = read_text_if_exists(source_path)
    if text is None:
        return ParameterSource(path=source_path, values={}, found=False)
    return ParameterSource(path=source_path, values=parse_parameter_text(text), found=True)


@dataclass
class ParameterSet(Mapping[str, str]):
    """默认值层与参数文件覆盖层合并后的只读参数集合。"""  # 类说明。

    defaults: Dict[str, str]  # 内置默认值层。
    overrides: Dict[str, str]  # 参数文件覆盖层（仅非空值）。
    _values: Dict[str, str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """按照默认值在前、覆盖层在后的顺序合并。"""  # 方法说明。
        merged = dict(self.defaults)
        merged.update({key: value for key, value in self.overrides.items() if value})
        if DEBUG_KEY in merged:  # 调试开关只认 "true"，其余任何值都视为 "false"。
            merged[DEBUG_KEY] = "true" if merged[DEBUG_KEY] == "true" else "false"
        self._values = merged

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def resolve(self, key: str) -> str:
        """返回参数值，未知键解析为空字符串而不是报错。"""  # 方法说明。
        return self._values.get(key, "")


def is_path_like(key: str, suffixes: list[str]) -> bool:
    """判断参数名是否以路径后缀结尾，例如 _PATH 或 _DIR。"""  # 函数说明。

    return any(key.endswith(suffix) for suffix in suffixes)


def provider_parameter_names(provider: str) -> tuple[str, str]:
    """返回 provider 对应的项目路径与端点参数名，例如 HUBSPOT_PROJECT_PATH。"""  # 函数说明。

    prefix = provider.strip().upper().replace("-", "_")
    return f"{prefix}_PROJECT_PATH", f"{prefix}_MCP_URL"


def build_parameter_set(
    source: ParameterSource,
    providers: Mapping[str, Mapping[str, Any]],
    orchestrator_path: str | os.PathLike[str],
    home: str | None = None,
) -> ParameterSet:
    """根据参数来源与 provider 默认值构造参数集合。

    INSTALL_DIR 先从参数文件解析，再用于推导各 provider 的默认项目路径，
    因此只覆盖 INSTALL_DIR 也会影响所有派生默认值。
    """

    home_dir = home if home is not None else os.path.expanduser("~")
    install_dir = source.resolve(INSTALL_DIR_KEY, home_dir)
    defaults: Dict[str, str] = {
        INSTALL_DIR_KEY: home_dir,
        ORCHESTRATOR_KEY: os.fspath(orchestrator_path),
        DEBUG_KEY: "false",
    }
    for name, provider in providers.items():
        path_key, url_key = provider_parameter_names(name)
        defaults[path_key] = os.path.join(install_dir, str(provider["project_dir"]))
        defaults[url_key] = str(provider["mcp_url"])
    overrides = dict(source.values)
    overrides.pop(ORCHESTRATOR_KEY, None)  # 编排器位置只由项目布局决定。
    return ParameterSet(defaults=defaults, overrides=overrides)


def missing_source_warning(source: ParameterSource) -> ParameterSourceMissing | None:
    """参数文件缺失时返回对应的警告异常对象，存在时返回 None。"""  # 函数说明。

    if source.found:
        return None
    return ParameterSourceMissing(str(source.path))
