"""cratekit - 源码包管理器的包标识与发布核心"""

__version__ = "0.4.0"
