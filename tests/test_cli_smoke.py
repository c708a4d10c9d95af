"""通过 python -m src.cli.main 执行 install / validate 的冒烟测试。"""
# 导入 json 以读取 CLI 写出的目标配置。
import json
# 导入 os 以操作环境变量（如 PYTHONPATH）。
import os
# 导入 subprocess 以运行 python -m 命令。
import subprocess
# 导入 sys 以获取当前解释器路径。
import sys
# 导入 pathlib.Path 以构造临时目录。
from pathlib import Path

# 计算仓库根目录，子进程通过 PYTHONPATH 导入 src 包。
ROOT = Path(__file__).resolve().parents[1]


# 定义辅助函数，包装对 CLI 的调用，减少重复样板代码。
def _run_cli(args: list[str], cwd: Path) -> subprocess.CompletedProcess:
    """使用当前 Python 解释器运行 CLI 并返回进程结果。"""

    # 复制环境并剔除会影响配置的变量。
    env = {key: value for key, value in os.environ.items() if not key.startswith("MCPDEPLOY_")}
    env.pop("DEBUG", None)
    env["PYTHONPATH"] = str(ROOT)
    env["HOME"] = str(cwd)
    # 组合命令行参数，使用 python -m src.cli.main 形式。
    command = [sys.executable, "-m", "src.cli.main", *args]
    # 执行子进程并捕获输出，便于调试失败信息。
    return subprocess.run(command, cwd=cwd, env=env, check=False, capture_output=True, text=True)


# 生成一份把 CLI 检查替换为当前解释器的用户配置。
def _user_config(tmp_path: Path) -> Path:
    """写出用户配置，使 validate 的 CLI 检查不依赖外部工具。"""

    path = tmp_path / "user.yaml"
    path.write_text(
        "validate:\n  cli_command: [" + json.dumps(sys.executable) + ", --version]\n",
        encoding="utf-8",
    )
    return path


# 安装到显式目标路径，随后 validate 依次得到失败与通过。
def test_install_then_validate(tmp_path) -> None:
    """install 写出目标配置；补齐依赖目录后 validate 返回 0。"""

    target = tmp_path / "desktop" / "claude_desktop_config.json"
    common = ["--project-root", str(tmp_path), "--target-path", str(target), "--config", str(_user_config(tmp_path))]
    result = _run_cli(["install", *common], cwd=tmp_path)
    assert result.returncode == 0, result.stdout + result.stderr
    document = json.loads(target.read_text(encoding="utf-8"))
    assert "claude-code-orchestrator" in document["mcpServers"]
    assert "parameter file not found" in result.stdout

    # 缺少 node_modules 时 validate 返回 1。
    result = _run_cli(["validate", *common], cwd=tmp_path)
    assert result.returncode == 1, result.stdout + result.stderr
    assert "FAIL: dependencies installed" in result.stdout

    # 补齐依赖与参数文件后全部通过。
    (tmp_path / "node_modules" / "@magicturtle" / "claude-orchestrator").mkdir(parents=True)
    (tmp_path / ".env").write_text("DEBUG=false\n", encoding="utf-8")
    result = _run_cli(["validate", *common, "--log-format", "jsonl"], cwd=tmp_path)
    assert result.returncode == 0, result.stdout + result.stderr
    records = [json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]
    summary = [record for record in records if record["msg"] == "validation summary"]
    assert summary and summary[0]["errors"] == 0


# 损坏的目标配置导致退出码 1 且文件保持原样。
def test_install_refuses_corrupt_target(tmp_path) -> None:
    """目标文件无法解析时 install 失败并输出错误分类。"""

    target = tmp_path / "config.json"
    target.write_text("{not json", encoding="utf-8")
    result = _run_cli(["install", "--project-root", str(tmp_path), "--target-path", str(target)], cwd=tmp_path)
    assert result.returncode == 1
    assert "configuration-corruption" in result.stdout
    assert "Traceback" not in result.stdout
    assert target.read_text(encoding="utf-8") == "{not json"


# 打印配置快照后直接退出。
def test_print_config(tmp_path) -> None:
    """--print-config 输出带来源注释的快照。"""

    result = _run_cli(["install", "--print-config", "--set", "backup.retain=4"], cwd=tmp_path)
    assert result.returncode == 0, result.stderr
    assert "retain: 4  # cli:set" in result.stderr


# 参数错误由 argparse 以退出码 2 报告。
def test_unknown_command_exit_code(tmp_path) -> None:
    """未知子命令返回 2。"""

    result = _run_cli(["deploy-everything"], cwd=tmp_path)
    assert result.returncode == 2
