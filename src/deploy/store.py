"""目标配置文件的存取接口：合并逻辑只通过该接口接触宿主应用的共享文件。"""  # 模块说明。
# 导入 abc 模块中的 ABC 与 abstractmethod，用于声明抽象基类。
from abc import ABC, abstractmethod
# 导入 os 以接受 PathLike 参数。
import os
# 导入 pathlib.Path 统一处理路径对象。
from pathlib import Path
# 导入 typing 的 List 标注备份列表。
from typing import List

# 导入 I/O 工具：缺失返回 None 的读取、原子写入与独占创建。
from src.utils.io import atomic_write_text, read_text_if_exists, write_text_exclusive

# 备份文件名中的固定中缀，完整格式为 <目标路径>.backup.<毫秒时间戳>。
BACKUP_INFIX = ".backup."


# 定义统一的抽象基类，文件实现与测试替身都应继承该类。
class DocumentStore(ABC):
    """约定目标文档读写与备份管理的抽象接口。"""

    # 返回目标文档的可读位置描述，用于日志输出。
    @property
    @abstractmethod
    def location(self) -> str:
        """目标文档的位置（通常为文件路径）。"""
        raise NotImplementedError

    # 读取原始文本，目标不存在时返回 None。
    @abstractmethod
    def read_raw(self) -> str | None:
        """返回目标文档的原始文本，不存在时返回 None。"""
        raise NotImplementedError

    # 以覆盖方式写入最终文本。
    @abstractmethod
    def write_raw(self, text: str) -> None:
        """持久化最终文档文本，必要时创建父目录。"""
        raise NotImplementedError

    # 写入一份不可变备份并返回其位置。
    @abstractmethod
    def write_backup(self, text: str, timestamp_ms: int) -> str:
        """以时间戳命名写入备份，从不覆盖已有备份。"""
        raise NotImplementedError

    # 按时间从旧到新列出已有备份。
    @abstractmethod
    def list_backups(self) -> List[str]:
        """返回所有备份位置，按时间戳升序排列。"""
        raise NotImplementedError

    # 删除指定备份，仅在配置了保留上限时调用。
    @abstractmethod
    def delete_backup(self, location: str) -> None:
        """删除一份备份。"""
        raise NotImplementedError


# 基于本地文件系统的默认实现。
class FileDocumentStore(DocumentStore):
    """将目标文档与备份保存为同目录下的兄弟文件。"""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """保存目标文件路径。"""
        # 展开用户目录，确保 ~ 开头的覆盖路径也能正常工作。
        self.path = Path(path).expanduser()

    @property
    def location(self) -> str:
        """返回目标文件路径字符串。"""
        return str(self.path)

    def read_raw(self) -> str | None:
        """读取目标文件；仅文件缺失时返回 None，权限等错误向上传播。"""
        return read_text_if_exists(self.path)

    def write_raw(self, text: str) -> None:
        """通过临时文件加 os.replace 原子写入；目标为符号链接时写入链接指向的真实文件。"""
        atomic_write_text(self.path.resolve(), text)

    def backup_path(self, timestamp_ms: int) -> Path:
        """构造 <目标路径>.backup.<毫秒时间戳> 形式的备份路径。"""
        return self.path.with_name(f"{self.path.name}{BACKUP_INFIX}{timestamp_ms}")

    def write_backup(self, text: str, timestamp_ms: int) -> str:
        """独占创建备份文件；同一毫秒内已存在同名备份时顺延时间戳。"""
        stamp = timestamp_ms
        while True:
            candidate = self.backup_path(stamp)
            try:
                write_text_exclusive(candidate, text)
            except FileExistsError:
                stamp += 1  # 不覆盖任何已有备份。
                continue
            return str(candidate)

    def list_backups(self) -> List[str]:
        """扫描兄弟文件，只返回时间戳部分为纯数字的备份。"""
        if not self.path.parent.is_dir():
            return []
        prefix = f"{self.path.name}{BACKUP_INFIX}"
        found: list[tuple[int, str]] = []
        for candidate in self.path.parent.iterdir():
            if not candidate.is_file() or not candidate.name.startswith(prefix):
                continue
            stamp = candidate.name[len(prefix) :]
            if stamp.isdigit():
                found.append((int(stamp), str(candidate)))
        return [location for _, location in sorted(found)]

    def delete_backup(self, location: str) -> None:
        """删除备份文件，已不存在时静默跳过。"""
        Path(location).unlink(missing_ok=True)
