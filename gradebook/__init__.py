# 成绩册平均分计算引擎
__version__ = "1.0.0"
