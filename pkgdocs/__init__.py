"""pkgdocs - 外部包文档聚合工具"""

__version__ = "0.1.0"
