# 工具模块
from .precision_handler import (
    format_decimal,
    round2,
    safe_percentage,
    batch_format_dict,
    batch_format_list,
    DEFAULT_DECIMAL_PLACES
)

__all__ = [
    'format_decimal',
    'round2',
    'safe_percentage',
    'batch_format_dict',
    'batch_format_list',
    'DEFAULT_DECIMAL_PLACES'
]
