# 成绩统计函数
# 纯函数，无I/O；空输入返回0或空集合，不抛出异常
import logging
from typing import Any, List, Sequence, Tuple

import numpy as np

from ..domain.models import GradeRangeBucket
from ..utils.precision_handler import round2, safe_percentage

logger = logging.getLogger(__name__)

# 默认成绩区间：前三个为左闭右开，最后一个为闭区间
DEFAULT_GRADE_RANGES: List[Tuple[float, float]] = [
    (0.0, 4.0),
    (4.0, 6.0),
    (6.0, 8.0),
    (8.0, 10.0),
]

DEFAULT_PASS_MARK = 5.0
DEFAULT_TOP_COUNT = 10


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=np.float64)


def mean(values: Sequence[float]) -> float:
    """算术平均值，保留两位小数"""
    scores = _as_array(values)
    if scores.size == 0:
        return 0.0
    return round2(np.mean(scores))


def median(values: Sequence[float]) -> float:
    """中位数：奇数取中间值，偶数取中间两个值的平均，保留两位小数"""
    scores = _as_array(values)
    if scores.size == 0:
        return 0.0
    return round2(np.median(scores))


def highest(values: Sequence[float]) -> float:
    scores = _as_array(values)
    if scores.size == 0:
        return 0.0
    return round2(np.max(scores))


def lowest(values: Sequence[float]) -> float:
    scores = _as_array(values)
    if scores.size == 0:
        return 0.0
    return round2(np.min(scores))


def distribute(values: Sequence[float],
               ranges: Sequence[Tuple[float, float]] = DEFAULT_GRADE_RANGES) -> List[GradeRangeBucket]:
    """
    计算成绩区间分布

    每个区间包含最小值、不包含最大值，最后一个区间同时包含最大值，
    保证边界值只被统计一次

    Args:
        values: 成绩列表
        ranges: (min, max) 区间列表，按从低到高排列

    Returns:
        各区间的人数和百分比
    """
    scores = _as_array(values)
    total_count = int(scores.size)
    if total_count == 0:
        return []

    buckets = []
    last_index = len(ranges) - 1
    for index, (range_min, range_max) in enumerate(ranges):
        if index == last_index:
            mask = (scores >= range_min) & (scores <= range_max)
        else:
            mask = (scores >= range_min) & (scores < range_max)

        count = int(np.sum(mask))
        buckets.append(GradeRangeBucket(
            min=range_min,
            max=range_max,
            count=count,
            percentage=safe_percentage(count, total_count)
        ))

    uncounted = total_count - sum(bucket.count for bucket in buckets)
    if uncounted > 0:
        logger.warning(f"{uncounted}个成绩不在任何统计区间内")

    return buckets


def rank_top(values_with_ids: Sequence[Tuple[Any, float]],
             count: int = DEFAULT_TOP_COUNT) -> List[Tuple[Any, int, float]]:
    """
    按成绩降序排名，成绩相同时保持输入顺序

    Args:
        values_with_ids: (id, 成绩) 列表
        count: 返回的最大条数

    Returns:
        (id, 名次, 成绩) 列表，名次从1开始
    """
    if count <= 0:
        return []

    # sorted 为稳定排序，reverse=True 时相等元素仍保持原始顺序
    ranked = sorted(values_with_ids, key=lambda pair: pair[1], reverse=True)
    return [
        (identifier, rank, round2(value))
        for rank, (identifier, value) in enumerate(ranked[:count], start=1)
    ]


def count_approved(values: Sequence[float], pass_mark: float = DEFAULT_PASS_MARK) -> int:
    scores = _as_array(values)
    return int(np.sum(scores >= pass_mark))


def approval_rate(values: Sequence[float], pass_mark: float = DEFAULT_PASS_MARK) -> float:
    """及格率(0-100)：成绩 >= 及格线的比例"""
    scores = _as_array(values)
    return safe_percentage(count_approved(scores, pass_mark), int(scores.size))
