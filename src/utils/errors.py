"""定义部署流程使用的错误类型与分类辅助函数。"""  # 模块说明。
# 导入 errno 以识别常见的 I/O 错误码。
import errno


# 定义所有部署异常的公共基类，便于 CLI 统一捕获。
class DeployError(Exception):
    """部署流程中可预期的致命错误基类。"""  # 类说明。


# 参数文件缺失属于“配置缺省”，只需警告即可继续。
class ParameterSourceMissing(DeployError):
    """参数文件不存在，调用方应退化为默认值并给出警告。"""  # 类说明。

    def __init__(self, path: str) -> None:
        """保存缺失文件的路径，便于日志输出。"""  # 方法说明。
        super().__init__(f"Parameter file not found: {path}")  # 构造统一的错误消息。
        self.path = path  # 记录路径供上层引用。


# 模板渲染后无法解析或不满足结构约束。
class TemplateError(DeployError):
    """渲染结果不是合法文档，写入前即中止。"""  # 类说明。


# 目标配置文件存在但内容损坏。
class TargetCorruptError(DeployError):
    """已有目标配置无法解析，必须由操作者手动处理冲突。"""  # 类说明。


# 当前操作系统不在支持列表中。
class UnsupportedPlatformError(DeployError):
    """无法为当前平台推导配置文件路径，系统从不猜测。"""  # 类说明。


# 外部命令缺失或以非零状态退出。
class ExternalCommandError(DeployError):
    """更新流程调用的外部命令执行失败。"""  # 类说明。

    def __init__(self, command: list[str], returncode: int, detail: str = "") -> None:
        """记录命令与退出码，构造可读消息。"""  # 方法说明。
        rendered = " ".join(command)  # 将命令列表拼接为字符串。
        message = f"Command failed ({returncode}): {rendered}"  # 基础消息。
        if detail:  # 若提供了附加信息则追加。
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = list(command)  # 保存命令副本。
        self.returncode = returncode  # 保存退出码。


# 定义异常分类函数，对应设计中的错误分类表。
def classify_exception(exc: BaseException) -> str:
    """根据异常类型返回 absence/corruption/environment/io/unknown 标签。"""  # 函数说明。
    if isinstance(exc, ParameterSourceMissing):
        return "configuration-absence"
    if isinstance(exc, (TemplateError, TargetCorruptError)):
        return "configuration-corruption"
    if isinstance(exc, (UnsupportedPlatformError, ExternalCommandError)):
        return "environment-mismatch"
    # 磁盘写满单独标注，便于操作者快速定位。
    if isinstance(exc, OSError) and exc.errno == errno.ENOSPC:
        return "io-failure:disk-full"
    # 权限拒绝等其余 OSError 均属于 I/O 失败。
    if isinstance(exc, OSError):
        return "io-failure"
    # 其余异常交由上层按未知错误处理。
    return "unknown"
