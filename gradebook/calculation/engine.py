# 平均分计算引擎
# 评价项成绩 -> 单元平均分 -> 班级（学生总评）平均分
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Dict, Any, Iterable, List, Optional, Sequence, Union

import numpy as np

from .. import config
from ..domain.enums import FallbackPolicy, FormulaErrorKind, FormulaType
from ..domain.models import (
    FormulaSpec, Score, Unit, SchoolClass, Student, UnitAverage, StudentAverage
)
from .formulas import (
    FormulaError, FormulaChildCountMismatchError, compile_formula, referenced_indices
)

logger = logging.getLogger(__name__)

# 这些验证错误在公式单独验证有效、但子项数量发生变化时出现
_CHILD_COUNT_ERROR_KINDS = (
    FormulaErrorKind.REFERENCE_OUT_OF_RANGE,
    FormulaErrorKind.MISSING_REFERENCE,
)


class AveragingStrategy(ABC):
    """平均分聚合策略抽象基类"""

    @abstractmethod
    def calculate(self, values: Sequence[float], formula: FormulaSpec) -> float:
        """将按序排列的子项成绩聚合为一个平均分"""
        pass

    @abstractmethod
    def get_algorithm_info(self) -> Dict[str, str]:
        """获取算法信息"""
        pass


class SimpleMeanStrategy(AveragingStrategy):
    """简单算术平均"""

    def calculate(self, values: Sequence[float], formula: FormulaSpec) -> float:
        if len(values) == 0:
            return 0.0
        return float(np.mean(np.asarray(values, dtype=np.float64)))

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'SimpleMean',
            'version': '1.0',
            'description': '子项成绩的算术平均'
        }


class PersonalizedFormulaStrategy(AveragingStrategy):
    """个性化公式：第i个子项成绩绑定到Ni"""

    def calculate(self, values: Sequence[float], formula: FormulaSpec) -> float:
        if len(values) == 0:
            return 0.0

        expression = formula.expression or ''
        child_count = len(values)
        try:
            compiled = compile_formula(expression, child_count)
        except FormulaError as e:
            if e.kind in _CHILD_COUNT_ERROR_KINDS:
                expected = max(referenced_indices(expression), default=0)
                raise FormulaChildCountMismatchError(expected, child_count) from e
            raise

        return compiled.evaluate(values)

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'PersonalizedFormula',
            'version': '1.0',
            'description': '按用户公式加权计算，N1..Nk按子项序号绑定',
            'evaluator': 'recursive_descent'
        }


def group_scores_by_student(scores: Iterable[Score]) -> Dict[str, List[Score]]:
    """按学生分组成绩，每个学生只读取自己的成绩"""
    grouped = defaultdict(list)
    for score in scores:
        grouped[score.student_id].append(score)
    return dict(grouped)


def collect_unit_averages(student_averages: Iterable[StudentAverage], unit_id: str) -> List[float]:
    """
    收集所有学生在某单元的平均分

    班级范围的单元平均分 = 这些值的简单平均，与单元使用的公式无关，
    也从不直接用原始成绩重新计算
    """
    values = []
    for student_average in student_averages:
        value = student_average.unit_average(unit_id)
        if value is not None:
            values.append(value)
    return values


class AveragingEngine:
    """平均分计算引擎"""

    def __init__(self, fallback_policy: Union[FallbackPolicy, str, None] = None,
                 max_workers: Optional[int] = None):
        """
        初始化计算引擎

        Args:
            fallback_policy: 个性化公式求值失败时的处理策略，默认读取配置
                simple - 记录告警并回退为简单平均
                raise  - 直接抛出FormulaError
            max_workers: 并行计算进程数，默认读取配置，1表示串行
        """
        self.fallback_policy = FallbackPolicy(fallback_policy or config.FORMULA_FALLBACK_POLICY)
        self.max_workers = max_workers if max_workers is not None else config.MAX_WORKERS
        self.strategies: Dict[FormulaType, AveragingStrategy] = {
            FormulaType.SIMPLE: SimpleMeanStrategy(),
            FormulaType.PERSONALIZED: PersonalizedFormulaStrategy(),
        }

    def register_strategy(self, formula_type: FormulaType, strategy: AveragingStrategy):
        """注册聚合策略"""
        self.strategies[formula_type] = strategy
        logger.info(f"已注册平均分策略: {formula_type.value} ({strategy.__class__.__name__})")

    def get_algorithm_info(self) -> Dict[str, Any]:
        return {
            formula_type.value: strategy.get_algorithm_info()
            for formula_type, strategy in self.strategies.items()
        }

    def aggregate(self, values: Sequence[float], formula: FormulaSpec, context: str = '') -> float:
        """
        按公式配置聚合子项成绩

        Raises:
            FormulaError: 仅在fallback_policy为raise时抛出
        """
        if formula.formula_type not in self.strategies:
            raise ValueError(f"未知的公式类型: {formula.formula_type}")

        strategy = self.strategies[formula.formula_type]
        try:
            return strategy.calculate(values, formula)
        except FormulaError as e:
            if self.fallback_policy == FallbackPolicy.RAISE:
                raise
            logger.warning(
                f"{context}个性化公式计算失败({e.kind.value}): {e.message}，回退为简单平均"
            )
            return self.strategies[FormulaType.SIMPLE].calculate(values, FormulaSpec.simple())

    def _present_scores(self, unit: Unit, scores: Iterable[Score]) -> List[tuple]:
        """按评价项序号返回(评价项, 成绩)，没有成绩的评价项被排除"""
        values_by_item = {score.evaluation_item_id: score.value for score in scores}
        return [
            (item, float(values_by_item[item.id]))
            for item in unit.ordered_items()
            if item.id in values_by_item
        ]

    def compute_unit_average(self, unit: Unit, scores: Iterable[Score]) -> float:
        """
        计算学生的单元平均分

        Args:
            unit: 单元（含评价项和公式配置）
            scores: 该学生的成绩，缺失的评价项不计为0，直接排除

        Returns:
            单元平均分（未四舍五入）
        """
        values = [value for _, value in self._present_scores(unit, scores)]
        return self.aggregate(values, unit.formula, context=f"单元[{unit.name}]")

    def compute_unit_breakdown(self, unit: Unit, student: Student,
                               scores: Iterable[Score]) -> Dict[str, Any]:
        """计算单元平均分并返回各评价项成绩明细"""
        student_scores = [score for score in scores if score.student_id == student.id]
        present = self._present_scores(unit, student_scores)
        average = self.aggregate(
            [value for _, value in present], unit.formula, context=f"单元[{unit.name}]"
        )

        return {
            'student_id': student.id,
            'student_name': student.name,
            'unit_id': unit.id,
            'unit_name': unit.name,
            'average': average,
            'grades': [
                {
                    'evaluation_item_id': item.id,
                    'evaluation_item_name': item.name,
                    'value': value
                }
                for item, value in present
            ]
        }

    def compute_class_average(self, school_class: SchoolClass, unit_averages: Sequence[float]) -> float:
        """按班级公式聚合单元平均分（按单元序号绑定N1..Nk）"""
        return self.aggregate(
            list(unit_averages), school_class.formula, context=f"班级[{school_class.name}]"
        )

    def compute_student_average(self, school_class: SchoolClass, student: Student,
                                scores: Iterable[Score]) -> StudentAverage:
        """计算单个学生的各单元平均分和总评平均分"""
        student_scores = [score for score in scores if score.student_id == student.id]
        units = school_class.ordered_units()

        if not units:
            return StudentAverage(student.id, student.name, 0.0, [])

        unit_averages = []
        for unit in units:
            average = self.compute_unit_average(unit, student_scores)
            logger.debug(f"学生 {student.id} 单元 {unit.id} 平均分: {average}")
            unit_averages.append(UnitAverage(unit.id, unit.name, average))

        average = self.compute_class_average(
            school_class, [unit_average.average for unit_average in unit_averages]
        )
        return StudentAverage(student.id, student.name, average, unit_averages)

    def compute_all_student_averages(self, school_class: SchoolClass, students: Sequence[Student],
                                     scores: Iterable[Score],
                                     max_workers: Optional[int] = None) -> List[StudentAverage]:
        """
        计算班级所有学生的平均分

        学生之间没有数据依赖，max_workers > 1 时使用多进程并行计算，
        结果始终按学生输入顺序返回，与串行计算完全一致
        """
        students = list(students)
        if not students:
            return []

        scores_by_student = group_scores_by_student(scores)
        workers = max_workers if max_workers is not None else self.max_workers

        if workers <= 1 or len(students) == 1:
            return [
                self.compute_student_average(
                    school_class, student, scores_by_student.get(student.id, [])
                )
                for student in students
            ]

        return self._parallel_student_averages(school_class, students, scores_by_student, workers)

    def _parallel_student_averages(self, school_class: SchoolClass, students: List[Student],
                                   scores_by_student: Dict[str, List[Score]],
                                   workers: int) -> List[StudentAverage]:
        logger.info(f"并行计算 {len(students)} 名学生平均分，进程数: {workers}")
        results: List[Optional[StudentAverage]] = [None] * len(students)

        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(
                    self.compute_student_average,
                    school_class,
                    student,
                    scores_by_student.get(student.id, [])
                ): index
                for index, student in enumerate(students)
            }

            for future in as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except Exception as exc:
                    logger.error(f"学生 {students[index].id} 平均分计算失败: {exc}")
                    raise

        return results


# 全局计算引擎实例
_averaging_engine = None


def get_averaging_engine() -> AveragingEngine:
    """获取全局计算引擎实例"""
    global _averaging_engine
    if _averaging_engine is None:
        _averaging_engine = AveragingEngine()
        logger.info("已初始化全局平均分计算引擎")
    return _averaging_engine
