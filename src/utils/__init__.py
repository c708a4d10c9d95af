"""配置、日志、I/O、错误与 schema 等通用工具。"""  # 包说明。
