# 服务配置
import os

# 日志级别
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# 及格线（0-10分制）
PASS_MARK = float(os.getenv("GRADEBOOK_PASS_MARK", "5.0"))

# 排名报告默认返回人数
TOP_COUNT = int(os.getenv("GRADEBOOK_TOP_COUNT", "10"))

# 个性化公式计算失败时的处理策略: simple(回退为简单平均) / raise(直接抛出)
FORMULA_FALLBACK_POLICY = os.getenv("GRADEBOOK_FORMULA_FALLBACK", "simple")

# 学生平均分并行计算进程数，1表示串行
MAX_WORKERS = int(os.getenv("GRADEBOOK_MAX_WORKERS", "1"))

# API服务监听配置
API_HOST = os.getenv("GRADEBOOK_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("GRADEBOOK_API_PORT", "8000"))
