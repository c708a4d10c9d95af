"""安装体检报告：一组互相独立、无副作用的检查，汇总后决定退出码。"""  # 模块说明。
from __future__ import annotations  # 启用前向注解以支持联合类型语法。

import json  # 导入 json 以解析目标配置文件。
import subprocess  # 导入 subprocess 以调用外部 CLI 读取版本。
from dataclasses import dataclass, field  # 导入 dataclass 封装检查上下文与结果。
from pathlib import Path  # 导入 Path 统一路径处理。
from typing import Callable, Dict, Iterable, List, Tuple  # 导入类型注解。

from src.utils.logging import ProgressPrinter  # 检查进度展示。

PASS = "PASS"  # 检查通过。
WARN = "WARN"  # 建议性问题，不影响退出码。
FAIL = "FAIL"  # 硬性失败，退出码为 1。

CommandRunner = Callable[[List[str]], Tuple[int, str]]  # 外部命令执行器签名。


@dataclass
class CheckResult:
    """单项检查的结果。"""  # 类说明。

    name: str  # 检查名称。
    status: str  # PASS / WARN / FAIL。
    message: str  # 面向操作者的描述。
    hint: str = ""  # 未通过时的修复建议。


@dataclass
class ReportContext:
    """检查所需的全部路径与设置，由 CLI 根据配置构造。"""  # 类说明。

    env_file: Path  # 参数文件路径。
    packages_dir: Path  # 依赖安装目录（node_modules）。
    orchestrator_dir: Path  # 编排器包目录。
    cli_command: List[str]  # 用于检测委托任务 CLI 的命令。
    registry_key: str  # 目标文档中的注册表键。
    registration_name: str  # 需要存在的注册项名称。
    target_path: Path | None = None  # 目标配置文件路径，无法推导时为 None。
    target_error: str = ""  # 无法推导目标路径的原因。
    runner: CommandRunner | None = field(default=None, repr=False)  # 可替换的命令执行器，便于测试。


def run_command(command: List[str]) -> Tuple[int, str]:
    """执行外部命令并返回状态码与首行输出。"""  # 函数说明。
    try:
        completed = subprocess.run(
            command,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except FileNotFoundError:  # 未找到命令时。
        return 127, "command not found"
    except PermissionError:  # 找到了但无执行权限。
        return 126, "permission denied"
    except OSError as exc:  # 例如没有 shebang 的可执行文件（ENOEXEC）。
        return 126, exc.strerror or str(exc)
    output_line = completed.stdout.splitlines()[0] if completed.stdout else ""
    return completed.returncode, output_line


def check_parameter_source(ctx: ReportContext) -> CheckResult:
    """参数文件存在性：缺失只给出警告，安装会退化为默认值。"""  # 函数说明。
    name = "parameter file"
    if ctx.env_file.is_file():
        return CheckResult(name, PASS, f"{ctx.env_file} exists")
    return CheckResult(name, WARN, f"{ctx.env_file} not found", hint="copy .env.example to .env")


def check_packages_installed(ctx: ReportContext) -> CheckResult:
    """依赖目录存在性。"""  # 函数说明。
    name = "dependencies installed"
    if ctx.packages_dir.is_dir():
        return CheckResult(name, PASS, f"{ctx.packages_dir} exists")
    return CheckResult(name, FAIL, f"{ctx.packages_dir} not found", hint="run: npm install")


def check_orchestrator(ctx: ReportContext) -> CheckResult:
    """编排器包存在性。"""  # 函数说明。
    name = "orchestrator package"
    if ctx.orchestrator_dir.is_dir():
        return CheckResult(name, PASS, f"{ctx.orchestrator_dir} exists")
    return CheckResult(name, FAIL, f"{ctx.orchestrator_dir} not found", hint="run: npm install")


def check_task_cli(ctx: ReportContext) -> CheckResult:
    """委托任务使用的 CLI 是否可用；仅为建议性检查。"""  # 函数说明。
    name = "task CLI available"
    runner = ctx.runner or run_command
    status, line = runner(list(ctx.cli_command))
    rendered = " ".join(ctx.cli_command)
    if status == 0:
        return CheckResult(name, PASS, f"{rendered}: {line}" if line else rendered)
    return CheckResult(
        name,
        WARN,
        f"{rendered} exited with {status}" + (f" ({line})" if line else ""),
        hint="install: npm i -g @anthropic-ai/claude-code",
    )


def check_target_registration(ctx: ReportContext) -> CheckResult:
    """目标配置中是否已注册编排器。"""  # 函数说明。
    name = "desktop config registration"
    hint = "run: mcp-deploy install"
    if ctx.target_path is None:
        return CheckResult(name, FAIL, ctx.target_error or "target config path unknown", hint=hint)
    try:
        document = json.loads(ctx.target_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return CheckResult(name, FAIL, f"{ctx.target_path} not found", hint=hint)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        return CheckResult(name, FAIL, f"{ctx.target_path} unreadable: {exc}", hint=hint)
    registry = document.get(ctx.registry_key) if isinstance(document, dict) else None
    if isinstance(registry, dict) and registry.get(ctx.registration_name):
        return CheckResult(name, PASS, f"'{ctx.registration_name}' registered in {ctx.target_path}")
    return CheckResult(name, FAIL, f"'{ctx.registration_name}' missing from {ctx.target_path}", hint=hint)


DEFAULT_CHECKS: List[Callable[[ReportContext], CheckResult]] = [
    check_parameter_source,
    check_packages_installed,
    check_orchestrator,
    check_task_cli,
    check_target_registration,
]


def run_checks(
    ctx: ReportContext,
    checks: Iterable[Callable[[ReportContext], CheckResult]] | None = None,
    progress: ProgressPrinter | None = None,
) -> List[CheckResult]:
    """依次执行全部检查；任何一项失败都不会跳过后续检查。"""  # 函数说明。
    results: List[CheckResult] = []
    for check in list(checks if checks is not None else DEFAULT_CHECKS):
        try:
            result = check(ctx)
        except Exception as exc:  # noqa: BLE001
            result = CheckResult(getattr(check, "__name__", "check"), FAIL, f"check raised {type(exc).__name__}: {exc}")
        results.append(result)
        if progress is not None:
            progress.update(result.name)
    return results


def summarize(results: Iterable[CheckResult]) -> Dict[str, int]:
    """统计通过、警告与错误数量，并给出退出码（有 FAIL 即为 1）。"""  # 函数说明。
    counts = {"passed": 0, "warnings": 0, "errors": 0}
    for result in results:
        if result.status == PASS:
            counts["passed"] += 1
        elif result.status == WARN:
            counts["warnings"] += 1
        else:
            counts["errors"] += 1
    counts["exit_code"] = 1 if counts["errors"] else 0
    return counts
