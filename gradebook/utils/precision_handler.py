# 成绩精度处理
# 计算过程中保持float64全精度，仅在报告输出边界保留两位小数
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, Union, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_DECIMAL_PLACES = 2

_EMPTY_STRINGS = ('', 'null', 'none', 'nan')


def format_decimal(value: Union[float, int, str, None],
                   decimal_places: int = DEFAULT_DECIMAL_PLACES) -> Optional[float]:
    """
    四舍五入到指定小数位（ROUND_HALF_UP，2.675 -> 2.68）

    Args:
        value: 成绩或百分比，允许数字字符串
        decimal_places: 保留位数

    Returns:
        四舍五入后的float；None、布尔值、非数值、NaN和无穷大返回None
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        if value.strip().lower() in _EMPTY_STRINGS:
            return None
    elif not isinstance(value, (int, float, Decimal, np.number)):
        return None

    try:
        number = float(value)
    except (ValueError, TypeError) as e:
        logger.warning(f"无法解析为数值: {value!r} ({e})")
        return None

    if not np.isfinite(number):
        return None

    # 先转为字符串再构造Decimal，避免二进制浮点误差影响进位
    quantum = Decimal(1).scaleb(-decimal_places)
    return float(Decimal(str(number)).quantize(quantum, rounding=ROUND_HALF_UP))


def round2(value: Union[float, int, None]) -> float:
    """两位小数，无效值按0处理"""
    formatted = format_decimal(value, DEFAULT_DECIMAL_PLACES)
    return 0.0 if formatted is None else formatted


def safe_percentage(part: Union[float, int], total: Union[float, int],
                    decimal_places: int = DEFAULT_DECIMAL_PLACES) -> float:
    """百分比(0-100)，总数为0时返回0"""
    if not total:
        return 0.0
    formatted = format_decimal(part / total * 100, decimal_places)
    return 0.0 if formatted is None else formatted


def _round_nested(value: Any, decimal_places: int, exclude_keys: List[str]) -> Any:
    """递归处理报告结构，只处理浮点数，整数、字符串等原样返回"""
    if isinstance(value, dict):
        return {
            key: item if key in exclude_keys else _round_nested(item, decimal_places, exclude_keys)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_round_nested(item, decimal_places, exclude_keys) for item in value]
    if isinstance(value, (float, np.floating)):
        formatted = format_decimal(value, decimal_places)
        return value if formatted is None else formatted
    return value


def batch_format_dict(data: Dict[str, Any], decimal_places: int = DEFAULT_DECIMAL_PLACES,
                      exclude_keys: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    报告字典中的浮点数统一保留指定小数位

    Args:
        data: 报告数据，可嵌套字典和列表
        decimal_places: 保留位数
        exclude_keys: 不做处理的键（任意嵌套层级）
    """
    if not isinstance(data, dict):
        return data
    return _round_nested(data, decimal_places, exclude_keys or [])


def batch_format_list(data: List[Any], decimal_places: int = DEFAULT_DECIMAL_PLACES,
                      exclude_keys: Optional[List[str]] = None) -> List[Any]:
    """报告列表中的浮点数统一保留指定小数位"""
    if not isinstance(data, list):
        return data
    return _round_nested(data, decimal_places, exclude_keys or [])
