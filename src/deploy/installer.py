"""install / update / validate 三个命令背后的顺序流程。"""  # 模块说明。
from __future__ import annotations  # 启用前向注解以支持联合类型语法。

import subprocess  # 导入 subprocess 以执行依赖更新命令。
from pathlib import Path  # 导入 Path 统一路径处理。
from typing import Any, Callable, Dict, List, Mapping  # 导入类型注解。

from src.deploy.locator import resolve_target_path  # 目标配置路径推导。
from src.deploy.merger import ProvisionResult, provision, unix_millis  # 读取-备份-合并-写入。
from src.deploy.parameters import (  # 参数来源与参数集合。
    ParameterSet,
    build_parameter_set,
    load_parameter_source,
    missing_source_warning,
)
from src.deploy.report import ReportContext  # 体检上下文。
from src.deploy.store import FileDocumentStore  # 基于文件的目标文档存取实现。
from src.deploy.template import load_template, render_template  # 模板读取与渲染。
from src.utils.config import package_root, project_root, resolve_project_path  # 路径解析工具。
from src.utils.errors import ExternalCommandError, UnsupportedPlatformError, classify_exception  # 错误类型。
from src.utils.logging import StructuredLogger  # 结构化日志器类型。

StreamingRunner = Callable[[List[str], Path], int]  # 继承终端输出的命令执行器签名。


def orchestrator_path(config: Dict[str, Any]) -> Path:
    """返回编排器包在项目中的绝对路径。"""  # 函数说明。
    return resolve_project_path(config, config["paths"]["orchestrator_package"])


def env_file_path(config: Dict[str, Any], override: str | None = None) -> Path:
    """返回参数文件路径，命令行覆盖优先。"""  # 函数说明。
    if override:
        return Path(override).expanduser()
    return resolve_project_path(config, config["paths"]["env_file"])


def template_path(config: Dict[str, Any], override: str | None = None) -> Path:
    """返回模板路径；相对路径基于仓库根目录，因为模板随工具一起发布。"""  # 函数说明。
    candidate = Path(override or config["paths"]["template"]).expanduser()
    if candidate.is_absolute() or override:
        return candidate
    return package_root() / candidate


def load_parameters(
    config: Dict[str, Any],
    logger: StructuredLogger,
    *,
    env_file: str | None = None,
    home: str | None = None,
) -> ParameterSet:
    """读取参数文件并构造参数集合；文件缺失只记录警告。"""  # 函数说明。
    source = load_parameter_source(env_file_path(config, env_file))
    warning = missing_source_warning(source)
    if warning is not None:
        logger.warning(
            "parameter file not found, using defaults",
            path=str(source.path),
            error_category=classify_exception(warning),
        )
    return build_parameter_set(source, config["providers"], orchestrator_path(config), home=home)


def run_install(
    config: Dict[str, Any],
    logger: StructuredLogger,
    *,
    env_file: str | None = None,
    template: str | None = None,
    target: str | None = None,
    system: str | None = None,
    home: str | None = None,
    environ: Mapping[str, str] | None = None,
    now_ms: Callable[[], int] = unix_millis,
) -> ProvisionResult:
    """执行完整安装流程：读取参数 → 渲染 → 定位目标 → 读取/备份/合并/写入。"""  # 函数说明。
    logger.info("loading parameters")
    params = load_parameters(config, logger, env_file=env_file, home=home)
    logger.info("parameters loaded", install_dir=params.resolve("INSTALL_DIR"), orchestrator=params.resolve("ORCHESTRATOR_PATH"))

    registry_key = config["target"]["registry_key"]
    template_file = template_path(config, template)
    logger.info("rendering template", template=str(template_file), mode=config["template"]["mode"])
    rendered = render_template(
        load_template(template_file),
        params,
        registry_key=registry_key,
        mode=config["template"]["mode"],
        path_suffixes=config["template"]["path_suffixes"],
    )
    for name in rendered.unresolved:
        logger.warning("placeholder has no value, rendered as empty string", placeholder=name)

    target_path = resolve_target_path(
        target or config["target"].get("path"),
        system=system,
        home=home,
        environ=environ,
    )
    logger.info("desktop config located", target=str(target_path))
    result = provision(
        FileDocumentStore(target_path),
        rendered.document,
        registry_key=registry_key,
        logger=logger,
        now_ms=now_ms,
        retain=int(config["backup"]["retain"]),
    )
    log_next_steps(config, logger, result, env_file_path(config, env_file))
    return result


def log_next_steps(config: Dict[str, Any], logger: StructuredLogger, result: ProvisionResult, env_path: Path) -> None:
    """安装完成后提示重启宿主应用与可用的委托工具。"""  # 函数说明。
    tools = [f"delegate_{name.replace('-', '_')}_task" for name in config["providers"]]
    tools.append("delegate_batch_tasks")
    logger.info("installation complete, restart the desktop app to load the orchestrator")
    logger.info("delegation tools available", tools=tools)
    logger.info("configuration files", desktop_config=result.target, parameters=str(env_path))


def stream_command(command: List[str], cwd: Path) -> int:
    """在项目根目录执行命令，输出直接继承到当前终端。"""  # 函数说明。
    try:
        completed = subprocess.run(command, cwd=cwd, check=False)
    except FileNotFoundError as exc:
        raise ExternalCommandError(command, 127, "command not found") from exc
    except OSError as exc:  # 权限不足或无法执行的文件。
        raise ExternalCommandError(command, 126, exc.strerror or str(exc)) from exc
    return completed.returncode


def run_update(
    config: Dict[str, Any],
    logger: StructuredLogger,
    *,
    runner: StreamingRunner = stream_command,
    **install_kwargs: Any,
) -> ProvisionResult:
    """检查并更新依赖，然后重新执行安装。"""  # 函数说明。
    root = project_root(config)
    outdated = list(config["update"]["outdated_command"])
    logger.info("checking for package updates", command=" ".join(outdated))
    try:
        status = runner(outdated, root)
    except ExternalCommandError as exc:  # 仅为报告性质，缺失命令不阻塞。
        logger.warning("outdated check unavailable", error=str(exc))
    else:
        if status != 0:  # npm outdated 在存在过期依赖时也会返回非零。
            logger.warning("outdated check reported pending updates", exit_code=status)

    update = list(config["update"]["update_command"])
    logger.info("updating packages", command=" ".join(update))
    status = runner(update, root)
    if status != 0:
        raise ExternalCommandError(update, status)

    logger.info("reconfiguring desktop config")
    result = run_install(config, logger, **install_kwargs)
    logger.info("update complete, restart the desktop app to apply changes")
    return result


def build_report_context(
    config: Dict[str, Any],
    *,
    env_file: str | None = None,
    target: str | None = None,
    system: str | None = None,
    home: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ReportContext:
    """根据配置构造体检上下文；目标路径无法推导时记录原因而不是抛出。"""  # 函数说明。
    ctx = ReportContext(
        env_file=env_file_path(config, env_file),
        packages_dir=resolve_project_path(config, config["paths"]["packages_dir"]),
        orchestrator_dir=orchestrator_path(config),
        cli_command=list(config["validate"]["cli_command"]),
        registry_key=config["target"]["registry_key"],
        registration_name=config["target"]["registration_name"],
    )
    try:
        ctx.target_path = resolve_target_path(
            target or config["target"].get("path"),
            system=system,
            home=home,
            environ=environ,
        )
    except UnsupportedPlatformError as exc:
        ctx.target_error = str(exc)
    return ctx
