"""提供部署流程使用的文件 I/O 工具，包括原子写入与可选读取。"""  # 模块说明。
# 导入 json 以支持 JSON 序列化。
import json
# 导入 os 模块以执行文件系统操作与原子替换。
import os
# 导入 shutil 以把原文件的权限位复制到临时文件。
import shutil
# 导入 pathlib.Path 统一处理路径对象。
from pathlib import Path
# 导入 typing.Any 以在 JSON 写入函数中进行类型注释。
from typing import Any


# 定义安全创建目录的函数，确保重复调用也不会抛异常。
def safe_mkdirs(path: str | os.PathLike[str]) -> None:
    """创建目标目录及其父级目录，目录已存在时静默跳过。"""  # 函数说明。
    Path(path).mkdir(parents=True, exist_ok=True)


# 定义以原子方式写入文本的函数。
def atomic_write_text(path: str | os.PathLike[str], text: str) -> None:
    """通过临时文件写入文本内容，并以原子方式替换目标文件。"""  # 函数说明。
    # 将目标路径转换为 Path 对象，便于处理父目录与临时文件。
    target_path = Path(path)
    safe_mkdirs(target_path.parent)
    # 临时文件与目标位于同一目录，保证 os.replace 不跨文件系统。
    tmp_path = target_path.with_name(f"{target_path.name}.tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()  # 先刷新 Python 缓冲。
            os.fsync(handle.fileno())  # 再落盘，避免替换后出现截断文件。
        if target_path.exists():  # 沿用原文件权限，0600 的配置不会被放宽。
            shutil.copymode(target_path, tmp_path)
        atomic_replace(tmp_path, target_path)
    finally:
        # 如果临时文件仍然存在（替换失败），进行清理。
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


# 定义统一的 JSON 序列化函数，写入与备份共用同一格式。
def dump_json_text(data: Any) -> str:
    """按照宿主应用的习惯（两空格缩进）序列化 JSON。"""  # 函数说明。
    return json.dumps(data, ensure_ascii=False, indent=2)


# 定义原子替换函数，封装 os.replace 并确保目录存在。
def atomic_replace(tmp_path: str | os.PathLike[str], final_path: str | os.PathLike[str]) -> None:
    """使用 os.replace 将临时文件移动到目标位置，确保父目录存在。"""  # 函数说明。
    final = Path(final_path)
    safe_mkdirs(final.parent)
    os.replace(Path(tmp_path), final)


# 定义可选读取函数，文件缺失时返回 None 而不是抛出异常。
def read_text_if_exists(path: str | os.PathLike[str]) -> str | None:
    """读取 UTF-8 文本；仅当文件不存在时返回 None，其余错误向上传播。"""  # 函数说明。
    try:
        with open(path, "r", encoding="utf-8", newline="") as handle:  # 保留原始换行符。
            return handle.read()
    except FileNotFoundError:
        return None  # 缺失文件由调用方决定如何退化。


# 定义独占创建文件的函数，用于备份等不可覆盖的产物。
def write_text_exclusive(path: str | os.PathLike[str], text: str) -> None:
    """以 x 模式创建新文件并写入文本，目标已存在时抛出 FileExistsError。"""  # 函数说明。
    target = Path(path)
    safe_mkdirs(target.parent)
    with open(target, "x", encoding="utf-8", newline="") as handle:
        handle.write(text)


# 定义向文本文件追加一行的函数，供日志落盘使用。
def append_line(path: str | os.PathLike[str], line: str) -> None:
    """向文件追加一行文本，自动创建父目录。"""  # 函数说明。
    target = Path(path)
    safe_mkdirs(target.parent)
    with target.open("a", encoding="utf-8") as handle:
        handle.write(line)
        handle.write("\n")
