"""部署工具的结构化日志：human/jsonl 两种输出、上下文绑定、体检进度条与汇总行。"""  # 模块说明。
from __future__ import annotations  # 允许在注解中使用 X | None 写法。

import json  # jsonl 输出与 human 模式下非字符串字段的序列化。
import logging  # print_summary 兼容标准库 logger。
import sys  # 默认输出到 stdout，并读取当前异常。
import traceback  # exception() 附带堆栈时使用。
import uuid  # 生成一次命令执行的 RunID。
from datetime import datetime, timezone  # 记录 UTC 时间戳。
from pathlib import Path  # 日志文件路径。
from typing import Any, Dict, Mapping, TextIO  # 类型注解。

from tqdm import tqdm  # validate 命令在终端中的进度条。

from src.utils.io import append_line, safe_mkdirs  # 日志文件追加写入。

LEVELS: Dict[str, int] = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}  # 与 logging 模块一致的数值。
FORMATS = ("human", "jsonl")  # 支持的输出格式。
_HEADER_FIELDS = ("ts", "level", "msg", "run_id")  # human 模式下构成首行前缀的字段。
_ERROR_FIELDS = ("error_category", "error_type", "error")  # human 模式下单独缩进输出的错误字段。
_INDENT = "    "  # 错误详情与堆栈的缩进。


def new_run_id() -> str:
    """返回 12 位十六进制 RunID。"""  # 函数说明。
    return uuid.uuid4().hex[:12]


def level_value(level: str) -> int:
    """把等级名称（大小写不限）转换为数值，未知等级抛出 ValueError。"""  # 函数说明。
    try:
        return LEVELS[level.upper()]
    except KeyError:
        raise ValueError(f"Unsupported log level: {level}") from None


def _render_field(value: Any) -> str:
    """字符串原样输出，列表与字典等用紧凑 JSON 表示。"""  # 函数说明。
    return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)


def render_human(record: Mapping[str, Any]) -> str:
    """把一条记录渲染为 `[LEVEL] ts run=… msg key=value…`，错误字段与堆栈换行缩进。"""  # 函数说明。

    head = [f"[{record['level']}]", record["ts"]]
    if record.get("run_id"):
        head.append(f"run={record['run_id']}")
    head.append(record["msg"])
    skipped = set(_HEADER_FIELDS) | set(_ERROR_FIELDS) | {"trace"}
    head.extend(f"{key}={_render_field(value)}" for key, value in record.items() if key not in skipped and value is not None)
    lines = [" ".join(head)]
    errors = [f"{key}={record[key]}" for key in _ERROR_FIELDS if record.get(key)]
    if errors:
        lines.append(_INDENT + " ".join(errors))
    trace_text = record.get("trace")
    if isinstance(trace_text, str) and trace_text.strip():
        lines.extend(_INDENT + line for line in trace_text.rstrip().splitlines())
    return "\n".join(lines)


class _Sink:
    """负责过滤等级并把渲染后的记录写到控制台与可选日志文件。"""  # 类说明。

    def __init__(self, log_format: str, level: str, log_file: str | None, quiet: bool, stream: TextIO | None) -> None:
        fmt = log_format.lower()
        if fmt not in FORMATS:
            raise ValueError(f"Unsupported log format: {log_format}")
        self.format = fmt
        self.threshold = level_value(level)
        self.quiet = quiet
        self.stream = stream if stream is not None else sys.stdout
        self.path = Path(log_file) if log_file else None
        if self.path is not None:
            safe_mkdirs(self.path.parent)  # 首次写入前准备好目录。

    def write(self, level: str, message: str, fields: Mapping[str, Any]) -> None:
        """低于阈值的记录直接丢弃，其余按格式渲染一次后分发。"""  # 方法说明。
        name = level.upper()
        if level_value(name) < self.threshold:
            return
        stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        record: Dict[str, Any] = {"ts": stamp, "level": name, "msg": message, **fields}
        line = render_human(record) if self.format == "human" else json.dumps(record, ensure_ascii=False, default=str)
        if not self.quiet:
            self.stream.write(line + "\n")
            self.stream.flush()
        if self.path is not None:
            append_line(self.path, line)


class StructuredLogger:
    """带上下文的日志器；bind() 返回共享同一输出的新实例。"""  # 类说明。

    def __init__(self, sink: _Sink, context: Mapping[str, Any] | None = None) -> None:
        self._sink = sink
        self._context: Dict[str, Any] = dict(context or {})

    def bind(self, **fields: Any) -> StructuredLogger:
        """追加上下文字段（如 run_id），原实例不受影响。"""  # 方法说明。
        return StructuredLogger(self._sink, {**self._context, **fields})

    def log(self, level: str, message: str, **fields: Any) -> None:
        """调用方字段覆盖同名上下文字段。"""  # 方法说明。
        self._sink.write(level, message, {**self._context, **fields})

    def debug(self, message: str, **fields: Any) -> None:
        self.log("DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log("WARNING", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log("ERROR", message, **fields)

    def exception(self, message: str, exc: BaseException | None = None, *, with_trace: bool = True, **fields: Any) -> None:
        """以 ERROR 级记录异常类型与消息；with_trace 为真时附带完整堆栈。"""  # 方法说明。
        error = exc if exc is not None else sys.exc_info()[1]
        if error is not None:
            fields.setdefault("error", str(error))
            fields.setdefault("error_type", type(error).__name__)
            if with_trace:
                fields.setdefault("trace", "".join(traceback.format_exception(type(error), error, error.__traceback__)))
        self.log("ERROR", message, **fields)


def get_logger(
    format: str = "human",
    level: str = "INFO",
    log_file: str | None = None,
    quiet: bool = False,
    *,
    stream: TextIO | None = None,
) -> StructuredLogger:
    """按 logging 配置段创建日志器；stream 仅供测试捕获输出。"""  # 函数说明。
    return StructuredLogger(_Sink(format, level, log_file, quiet, stream))


class ProgressPrinter:
    """体检进度：交互终端中显示 tqdm 进度条，否则退化为 DEBUG 日志。"""  # 类说明。

    def __init__(
        self,
        total: int,
        description: str,
        enabled: bool,
        logger: StructuredLogger | None = None,
        *,
        is_tty: bool | None = None,
    ) -> None:
        if is_tty is None:
            try:
                is_tty = sys.stdout.isatty()
            except (AttributeError, ValueError):  # stdout 被替换或已关闭。
                is_tty = False
        self.total = total
        self.count = 0
        self.enabled = enabled and total > 0
        self.logger = logger
        self._bar = tqdm(total=total, desc=description, leave=False) if self.enabled and is_tty else None

    def update(self, message: str | None = None) -> None:
        """完成一项检查后调用，message 为检查名称。"""  # 方法说明。
        if not self.enabled:
            return
        self.count += 1
        if self._bar is not None:
            self._bar.update(1)
            if message:
                self._bar.set_postfix_str(message)
        elif self.logger is not None:
            self.logger.debug("progress", progress={"completed": self.count, "total": self.total, "message": message})

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()


def print_summary(summary: Mapping[str, int], logger: StructuredLogger | logging.Logger | None = None) -> None:
    """输出体检汇总；结构化日志器下等级随结果变化（有错误为 ERROR，有警告为 WARNING）。"""  # 函数说明。
    passed = summary.get("passed", 0)
    warnings = summary.get("warnings", 0)
    errors = summary.get("errors", 0)
    if isinstance(logger, StructuredLogger):
        level = "ERROR" if errors else ("WARNING" if warnings else "INFO")
        logger.log(level, "validation summary", passed=passed, warnings=warnings, errors=errors)
        return
    target = logger if isinstance(logger, logging.Logger) else logging.getLogger("mcp-deploy")
    target.info("Validation summary passed=%s warnings=%s errors=%s", passed, warnings, errors)
