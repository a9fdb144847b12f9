"""服务层：网络引导、发布流水线与注册表控制操作"""
