"""部署流程：参数来源、模板渲染、目标定位、配置合并与安装体检。"""  # 包说明。
