"""验证结构化日志、进度展示与汇总输出的单元测试。"""  # 模块说明，解释测试目标。
import io  # 导入 io 以捕获控制台输出。
import json  # 导入 json 以解析 JSONL 日志。
import sys  # 导入 sys 以在测试中调整模块搜索路径。
from pathlib import Path  # 导入 Path 以便构造临时文件路径。

ROOT = Path(__file__).resolve().parents[1]  # 计算仓库根目录路径。
if str(ROOT) not in sys.path:  # 若根目录未在 sys.path 中。
    sys.path.insert(0, str(ROOT))  # 将其加入模块搜索路径以支持 from src 导入。

import pytest  # 导入 pytest 以使用异常断言。

from src.utils.errors import TargetCorruptError  # 导入异常类型以构造错误日志。
from src.utils.logging import ProgressPrinter, get_logger, new_run_id, print_summary  # 导入被测工具。


def test_jsonl_records_carry_bound_context(tmp_path: Path) -> None:
    """JSONL 模式下每行一条记录，绑定字段与附加字段都会落盘。"""  # 测试说明。
    log_file = tmp_path / "logs" / "run.log"  # 日志文件位于尚不存在的子目录。
    stream = io.StringIO()  # 控制台输出缓冲区。
    logger = get_logger(format="jsonl", level="INFO", log_file=str(log_file), stream=stream).bind(run_id="abc")
    logger.debug("hidden")  # 低于阈值的日志被丢弃。
    logger.info("target config written", target="/tmp/x.json", added=["bar"])
    console = [json.loads(line) for line in stream.getvalue().splitlines()]
    persisted = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert console == persisted  # 控制台与文件内容一致。
    assert len(console) == 1
    record = console[0]
    assert record["level"] == "INFO"
    assert record["run_id"] == "abc"
    assert record["added"] == ["bar"]
    assert record["ts"].endswith("Z")


def test_quiet_mode_only_writes_file(tmp_path: Path) -> None:
    """静默模式不输出到控制台，但仍写入文件。"""  # 测试说明。
    stream = io.StringIO()
    log_file = tmp_path / "quiet.log"
    logger = get_logger(format="human", log_file=str(log_file), quiet=True, stream=stream)
    logger.warning("parameter file not found, using defaults", path=".env")
    assert stream.getvalue() == ""
    assert "[WARNING]" in log_file.read_text(encoding="utf-8")


def test_human_format_renders_fields_and_errors() -> None:
    """human 模式以 key=value 追加字段，错误信息单独缩进输出。"""  # 测试说明。
    stream = io.StringIO()
    logger = get_logger(format="human", stream=stream)
    try:
        raise TargetCorruptError("config.json is not valid JSON")
    except TargetCorruptError as exc:
        logger.exception("install failed", exc=exc, with_trace=False, error_category="configuration-corruption")
    lines = stream.getvalue().splitlines()
    assert lines[0].startswith("[ERROR]")
    assert lines[0].endswith("install failed")
    assert "error_category=configuration-corruption" in lines[1]
    assert "error_type=TargetCorruptError" in lines[1]
    assert "Traceback" not in stream.getvalue()


def test_exception_includes_trace_when_requested() -> None:
    """with_trace=True 时附带完整堆栈。"""  # 测试说明。
    stream = io.StringIO()
    logger = get_logger(format="jsonl", stream=stream)
    try:
        raise OSError("disk on fire")
    except OSError as exc:
        logger.exception("update failed", exc=exc)
    record = json.loads(stream.getvalue())
    assert record["error"] == "disk on fire"
    assert "Traceback" in record["trace"]


def test_invalid_format_and_level_rejected() -> None:
    """未知格式与等级直接报错。"""  # 测试说明。
    with pytest.raises(ValueError):
        get_logger(format="xml")
    with pytest.raises(ValueError):
        get_logger(level="LOUD")


def test_progress_falls_back_to_debug_logs() -> None:
    """非 TTY 环境下进度以 DEBUG 日志记录。"""  # 测试说明。
    stream = io.StringIO()
    logger = get_logger(format="jsonl", level="DEBUG", stream=stream)
    progress = ProgressPrinter(total=2, description="validating", enabled=True, logger=logger, is_tty=False)
    progress.update("parameter file")
    progress.update("dependencies installed")
    progress.close()
    records = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [record["progress"]["completed"] for record in records] == [1, 2]
    assert records[-1]["progress"]["message"] == "dependencies installed"


def test_disabled_progress_is_silent() -> None:
    """关闭进度时不产生任何输出。"""  # 测试说明。
    stream = io.StringIO()
    logger = get_logger(format="jsonl", level="DEBUG", stream=stream)
    progress = ProgressPrinter(total=5, description="validating", enabled=False, logger=logger, is_tty=False)
    progress.update("x")
    progress.close()
    assert stream.getvalue() == ""
    assert progress.count == 0


@pytest.mark.parametrize(
    ("summary", "level"),
    [
        ({"passed": 5, "warnings": 0, "errors": 0}, "INFO"),
        ({"passed": 4, "warnings": 1, "errors": 0}, "WARNING"),
        ({"passed": 3, "warnings": 1, "errors": 1}, "ERROR"),
    ],
)
def test_print_summary_level_follows_outcome(summary: dict, level: str) -> None:
    """汇总行的等级随检查结果变化。"""  # 测试说明。
    stream = io.StringIO()
    print_summary(summary, get_logger(format="jsonl", stream=stream))
    record = json.loads(stream.getvalue())
    assert record["level"] == level
    assert record["msg"] == "validation summary"
    assert record["errors"] == summary["errors"]


def test_run_id_is_short_hex() -> None:
    """RunID 为 12 位十六进制字符串。"""  # 测试说明。
    run_id = new_run_id()
    assert len(run_id) == 12
    int(run_id, 16)
