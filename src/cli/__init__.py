"""命令行入口包。"""  # 包说明。
