"""安装体检报告的单元测试：检查相互独立，退出码只由 FAIL 决定。"""  # 模块说明。
import json  # 导入 json 以写入目标配置。
import sys  # 导入 sys 以调整模块搜索路径。
from pathlib import Path  # 导入 Path 以构造临时目录。

ROOT = Path(__file__).resolve().parents[1]  # 计算仓库根目录路径。
if str(ROOT) not in sys.path:  # 若根目录未在 sys.path 中。
    sys.path.insert(0, str(ROOT))  # 将其加入模块搜索路径以支持 from src 导入。

import pytest  # 导入 pytest 以按平台跳过。

from src.deploy.report import (  # 导入被测对象。
    DEFAULT_CHECKS,
    FAIL,
    PASS,
    WARN,
    CheckResult,
    ReportContext,
    run_checks,
    run_command,
    summarize,
)


def _context(tmp_path: Path, *, cli_status: int = 0, **overrides) -> ReportContext:
    """构造指向临时目录的体检上下文，外部命令由桩函数替代。"""  # 辅助函数说明。
    calls: list[list[str]] = []

    def _runner(command: list[str]) -> tuple[int, str]:
        calls.append(command)
        return cli_status, "1.0.0 (stub)" if cli_status == 0 else "boom"

    params = {
        "env_file": tmp_path / ".env",
        "packages_dir": tmp_path / "node_modules",
        "orchestrator_dir": tmp_path / "node_modules" / "@magicturtle" / "claude-orchestrator",
        "cli_command": ["claude", "--version"],
        "registry_key": "mcpServers",
        "registration_name": "claude-code-orchestrator",
        "target_path": tmp_path / "desktop" / "config.json",
        "runner": _runner,
    }
    params.update(overrides)
    ctx = ReportContext(**params)
    ctx.calls = calls  # 记录外部命令调用，便于断言。
    return ctx


def _healthy(tmp_path: Path) -> None:
    """在临时目录中布置一个完整安装。"""  # 辅助函数说明。
    (tmp_path / ".env").write_text("DEBUG=false\n", encoding="utf-8")
    (tmp_path / "node_modules" / "@magicturtle" / "claude-orchestrator").mkdir(parents=True)
    target = tmp_path / "desktop" / "config.json"
    target.parent.mkdir(parents=True)
    target.write_text(json.dumps({"mcpServers": {"claude-code-orchestrator": {"command": "node"}}}), encoding="utf-8")


def test_all_checks_pass(tmp_path: Path) -> None:
    """完整安装时五项检查全部通过，退出码为 0。"""  # 测试说明。
    _healthy(tmp_path)
    ctx = _context(tmp_path)
    results = run_checks(ctx)
    assert [result.status for result in results] == [PASS] * 5
    assert ctx.calls == [["claude", "--version"]]
    assert summarize(results) == {"passed": 5, "warnings": 0, "errors": 0, "exit_code": 0}


def test_every_check_runs_on_empty_project(tmp_path: Path) -> None:
    """即使前面的检查失败，后续检查仍会执行。"""  # 测试说明。
    ctx = _context(tmp_path, cli_status=127)
    results = run_checks(ctx)
    assert [(result.name, result.status) for result in results] == [
        ("parameter file", WARN),
        ("dependencies installed", FAIL),
        ("orchestrator package", FAIL),
        ("task CLI available", WARN),
        ("desktop config registration", FAIL),
    ]
    summary = summarize(results)
    assert summary["errors"] == 3
    assert summary["warnings"] == 2
    assert summary["exit_code"] == 1


def test_warnings_alone_do_not_fail(tmp_path: Path) -> None:
    """只有警告时退出码仍为 0。"""  # 测试说明。
    _healthy(tmp_path)
    (tmp_path / ".env").unlink()
    results = run_checks(_context(tmp_path, cli_status=1))
    summary = summarize(results)
    assert summary["warnings"] == 2
    assert summary["exit_code"] == 0


def test_registration_missing_or_unreadable(tmp_path: Path) -> None:
    """目标文件缺少注册项或无法解析时均判定为 FAIL。"""  # 测试说明。
    _healthy(tmp_path)
    target = tmp_path / "desktop" / "config.json"
    target.write_text(json.dumps({"mcpServers": {"other": {"command": "x"}}}), encoding="utf-8")
    results = run_checks(_context(tmp_path))
    assert results[-1].status == FAIL
    assert "missing" in results[-1].message
    target.write_text("{broken", encoding="utf-8")
    results = run_checks(_context(tmp_path))
    assert results[-1].status == FAIL
    assert "unreadable" in results[-1].message


def test_unknown_target_path_reports_reason(tmp_path: Path) -> None:
    """无法推导目标路径时给出原因而不是抛出。"""  # 测试说明。
    ctx = _context(tmp_path, target_path=None, target_error="Unsupported platform: Plan9")
    result = run_checks(ctx)[-1]
    assert result.status == FAIL
    assert result.message == "Unsupported platform: Plan9"


def test_checks_have_no_side_effects(tmp_path: Path) -> None:
    """检查过程中不会创建任何文件或目录。"""  # 测试说明。
    run_checks(_context(tmp_path, cli_status=127))
    assert list(tmp_path.iterdir()) == []


def test_run_command_missing_executable() -> None:
    """命令不存在时返回 127 而不是抛出。"""  # 测试说明。
    status, line = run_command(["definitely-not-a-real-command-mcp-deploy"])
    assert status == 127
    assert line == "command not found"


def _script_without_shebang(tmp_path: Path) -> Path:
    """写出一个可执行但没有 shebang 的文件，exec 时会得到 ENOEXEC。"""  # 辅助函数说明。
    script = tmp_path / "bin" / "claude"
    script.parent.mkdir()
    script.write_bytes(b"\x00\x01\x02 not a program\n")
    script.chmod(0o755)
    return script


@pytest.mark.skipif(sys.platform == "win32", reason="依赖 POSIX 可执行位")
def test_run_command_unexecutable_file(tmp_path: Path) -> None:
    """无法执行的文件返回 126 而不是抛出 OSError。"""  # 测试说明。
    status, line = run_command([str(_script_without_shebang(tmp_path))])
    assert status == 126
    assert line


@pytest.mark.skipif(sys.platform == "win32", reason="依赖 POSIX 可执行位")
def test_unexecutable_cli_is_a_warning(tmp_path: Path) -> None:
    """CLI 命令无法执行时其余检查照常运行，CLI 检查给出 WARN。"""  # 测试说明。
    _healthy(tmp_path)
    script = _script_without_shebang(tmp_path)
    ctx = _context(tmp_path, cli_command=[str(script), "--version"], runner=None)
    results = run_checks(ctx)
    assert len(results) == 5
    assert results[3].status == WARN
    assert "126" in results[3].message
    assert summarize(results)["exit_code"] == 0


def test_raising_check_becomes_fail(tmp_path: Path) -> None:
    """检查函数抛出异常时记为 FAIL，后续检查仍会执行。"""  # 测试说明。
    _healthy(tmp_path)

    def broken_check(ctx: ReportContext) -> CheckResult:
        raise RuntimeError("disk on fire")

    checks = [broken_check, *DEFAULT_CHECKS]
    results = run_checks(_context(tmp_path), checks=checks)
    assert len(results) == 6
    assert results[0].name == "broken_check"
    assert results[0].status == FAIL
    assert "disk on fire" in results[0].message
    assert [result.status for result in results[1:]] == [PASS] * 5
