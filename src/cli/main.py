"""命令行入口，负责解析参数并调用 install / update / validate 流程。"""  # 模块说明。
import argparse  # 导入 argparse 以解析命令行参数。
import logging  # 导入 logging 以在结构化日志器就绪前输出配置错误。
import os  # 导入 os 以读取 DEBUG 环境变量。
import sys  # 导入 sys 以支持通过 python -m 调用。

from src.deploy.installer import build_report_context, run_install, run_update  # 三个命令背后的流程。
from src.deploy.report import DEFAULT_CHECKS, FAIL, WARN, run_checks, summarize  # 体检检查与汇总。
from src.utils.config import (  # 导入配置工具以支持分层加载与快照。
    ConfigError,
    load_and_merge_config,
    parse_cli_set_items,
    render_effective_config,
    save_config,
)
from src.utils.errors import DeployError, classify_exception  # 错误类型与分类。
from src.utils.logging import ProgressPrinter, StructuredLogger, get_logger, new_run_id, print_summary  # 日志工具。


def parse_bool(value: str) -> bool:
    """将传入值解析为布尔类型，仅接受 true/false。"""  # 函数说明。

    if isinstance(value, bool):
        return value
    normalized = value.lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise argparse.ArgumentTypeError("Expected 'true' or 'false'")


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    """为每个子命令注册共享选项。"""  # 函数说明。

    parser.add_argument("--config", default=None, help="可选用户配置 YAML 路径，默认查找 config/user.yaml")
    parser.add_argument(
        "--set",
        dest="set_items",
        action="append",
        default=[],
        help="通过 KEY=VALUE 覆盖任意配置，可重复使用",
    )
    parser.add_argument(
        "--print-config",
        type=parse_bool,
        nargs="?",
        const=True,
        default=False,
        help="打印最终配置快照后退出 (true/false)",
    )
    parser.add_argument("--save-config", default=None, help="保存最终配置快照到指定路径后退出")
    parser.add_argument("--project-root", default=None, help="部署项目根目录（.env 与 node_modules 所在位置）")
    parser.add_argument("--env-file", default=None, help="KEY=VALUE 参数文件路径，默认 <project-root>/.env")
    parser.add_argument("--target-path", default=None, help="显式指定桌面应用配置文件，跳过按操作系统推导")
    parser.add_argument("--log-format", choices=["human", "jsonl"], default=None, help="日志格式")
    parser.add_argument("--log-level", default=None, help="日志等级（DEBUG/INFO/WARNING/ERROR）")
    parser.add_argument("--log-file", default=None, help="可选日志文件路径，追加写入")
    parser.add_argument("--quiet", type=parse_bool, nargs="?", const=True, default=None, help="静默模式 (true/false)")
    parser.add_argument(
        "--verbose",
        type=parse_bool,
        nargs="?",
        const=True,
        default=None,
        help="输出 DEBUG 日志并在失败时打印堆栈 (可省略值以启用)",
    )


def build_parser() -> argparse.ArgumentParser:
    """创建参数解析器并声明所有子命令。"""  # 函数说明。

    parser = argparse.ArgumentParser(
        prog="mcp-deploy",
        description="Provision the desktop app config with MCP provider entries",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    install = subparsers.add_parser("install", help="渲染模板并合并到桌面应用配置")
    _add_common_options(install)
    install.add_argument("--template", default=None, help="模板路径，默认 config/desktop_config.template.json")
    update = subparsers.add_parser("update", help="更新依赖后重新执行 install")
    _add_common_options(update)
    update.add_argument("--template", default=None, help="模板路径，默认 config/desktop_config.template.json")
    validate = subparsers.add_parser("validate", help="检查安装状态，存在错误时返回 1")
    _add_common_options(validate)
    validate.add_argument("--progress", type=parse_bool, default=None, help="是否显示检查进度条 (true/false)")
    return parser


def _build_cli_overrides(args: argparse.Namespace) -> dict:
    """根据解析结果构造 CLI 覆盖字典，仅包含显式传入的键。"""  # 工具函数说明。

    overrides: dict[str, dict] = {}
    if args.project_root is not None:
        overrides.setdefault("paths", {})["project_root"] = args.project_root
    if args.target_path is not None:
        overrides.setdefault("target", {})["path"] = args.target_path
    logging_overrides: dict[str, object] = {}
    if args.log_format is not None:
        logging_overrides["format"] = args.log_format
    if args.log_level is not None:
        logging_overrides["level"] = args.log_level
    if args.log_file is not None:
        logging_overrides["file"] = args.log_file
    if args.quiet is not None:
        logging_overrides["quiet"] = args.quiet
    if args.verbose:
        logging_overrides["level"] = "DEBUG"
    if logging_overrides:
        overrides["logging"] = logging_overrides
    if getattr(args, "progress", None) is not None:
        overrides["validate"] = {"progress": args.progress}
    return overrides


def _run_validate(config: dict, logger: StructuredLogger, args: argparse.Namespace) -> int:
    """执行全部检查并输出汇总，返回退出码。"""  # 函数说明。

    ctx = build_report_context(config, env_file=args.env_file)
    progress = ProgressPrinter(
        total=len(DEFAULT_CHECKS),
        description="validating",
        enabled=bool(config["validate"].get("progress", True)),
        logger=logger,
    )
    try:
        results = run_checks(ctx, progress=progress)
    finally:
        progress.close()
    for result in results:
        level = "ERROR" if result.status == FAIL else ("WARNING" if result.status == WARN else "INFO")
        logger.log(level, f"{result.status}: {result.name}", detail=result.message, hint=result.hint or None)
    summary = summarize(results)
    print_summary(summary, logger)
    if summary["errors"]:
        logger.error("action required: fix errors above before using")
    elif summary["warnings"]:
        logger.warning("recommended: address warnings for best experience")
    else:
        logger.info("all checks passed")
    return summary["exit_code"]


def main(argv: list[str] | None = None) -> int:
    """解析参数并执行子命令，返回退出状态码。"""  # 函数说明。

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    cli_logger = logging.getLogger("src.cli.main")
    try:
        bundle = load_and_merge_config(
            cli_overrides=_build_cli_overrides(args),
            cli_set_overrides=parse_cli_set_items(args.set_items) if args.set_items else {},
            config_path=args.config,
        )
    except (ConfigError, OSError) as exc:
        cli_logger.error("invalid configuration: %s", exc)
        return 1
    if args.print_config:
        cli_logger.info("effective config snapshot:\n%s", render_effective_config(bundle, include_sources=True))
        if args.save_config:
            save_config(bundle, args.save_config)
        return 0
    if args.save_config:
        save_config(bundle, args.save_config)
        cli_logger.info("configuration saved to %s", args.save_config)
        return 0

    config = bundle.config
    logging_cfg = config["logging"]
    logger = get_logger(
        format=logging_cfg["format"],
        level=logging_cfg["level"],
        log_file=logging_cfg.get("file"),
        quiet=bool(logging_cfg.get("quiet", False)),
    ).bind(run_id=new_run_id())
    with_trace = os.environ.get("DEBUG") == "true" or bool(args.verbose)
    logger.debug("effective config", user_config=bundle.user_path or "<none>", command=args.command)
    try:
        if args.command == "validate":
            return _run_validate(config, logger, args)
        if args.command == "update":
            run_update(config, logger, env_file=args.env_file, template=args.template)
        else:
            run_install(config, logger, env_file=args.env_file, template=args.template)
        return 0
    except (DeployError, OSError) as exc:
        logger.exception(f"{args.command} failed", exc=exc, with_trace=with_trace, error_category=classify_exception(exc))
        return 1
    except Exception as exc:  # noqa: BLE001
        logger.exception("unexpected error", exc=exc, error_category=classify_exception(exc))
        return 1


if __name__ == "__main__":  # 允许脚本直接运行。
    sys.exit(main())  # 将返回值作为进程退出码。
