# 成绩册领域模型
# 所有实体均为调用方已取出的只读视图，计算过程中不会被修改
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from .enums import FormulaType


@dataclass(frozen=True)
class FormulaSpec:
    """平均分公式配置：简单平均或个性化公式"""
    formula_type: FormulaType = FormulaType.SIMPLE
    expression: Optional[str] = None

    @classmethod
    def simple(cls) -> 'FormulaSpec':
        return cls(FormulaType.SIMPLE, None)

    @classmethod
    def personalized(cls, expression: str) -> 'FormulaSpec':
        return cls(FormulaType.PERSONALIZED, expression)

    @classmethod
    def from_storage(cls, type_formula: Optional[str],
                     average_formula: Optional[str]) -> 'FormulaSpec':
        """
        在数据访问边界构造公式配置

        Args:
            type_formula: 存储中的公式类型（simple / personalized），为空时视为simple
            average_formula: 存储中的公式文本

        Returns:
            公式配置，计算引擎不再根据字符串是否为空推断类型
        """
        formula_type = FormulaType(type_formula) if type_formula else FormulaType.SIMPLE
        if formula_type == FormulaType.PERSONALIZED:
            return cls.personalized(average_formula or '')
        return cls.simple()

    @property
    def is_personalized(self) -> bool:
        return self.formula_type == FormulaType.PERSONALIZED

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.formula_type.value, 'formula': self.expression}


@dataclass(frozen=True)
class Score:
    """单个学生在单个评价项上的成绩（0-10分）"""
    student_id: str
    evaluation_item_id: str
    value: float


@dataclass(frozen=True)
class EvaluationItem:
    """评价项，position决定其在单元公式中的N序号"""
    id: str
    name: str
    position: int
    unit_id: Optional[str] = None


@dataclass(frozen=True)
class Unit:
    """教学单元（如学期中的一个阶段）"""
    id: str
    name: str
    position: int
    formula: FormulaSpec = field(default_factory=FormulaSpec.simple)
    evaluation_items: List[EvaluationItem] = field(default_factory=list)
    class_id: Optional[str] = None

    def ordered_items(self) -> List[EvaluationItem]:
        """按序号排序的评价项（稳定排序）"""
        return sorted(self.evaluation_items, key=lambda item: item.position)


@dataclass(frozen=True)
class SchoolClass:
    """班级"""
    id: str
    name: str
    units: List[Unit] = field(default_factory=list)
    formula: FormulaSpec = field(default_factory=FormulaSpec.simple)
    code: Optional[str] = None

    def ordered_units(self) -> List[Unit]:
        """按序号排序的单元（稳定排序）"""
        return sorted(self.units, key=lambda unit: unit.position)

    def find_unit(self, unit_id: str) -> Optional[Unit]:
        for unit in self.units:
            if unit.id == unit_id:
                return unit
        return None


@dataclass(frozen=True)
class Student:
    id: str
    name: str
    registration: Optional[str] = None


@dataclass(frozen=True)
class UnitAverage:
    unit_id: str
    unit_name: str
    average: float

    def to_dict(self) -> Dict[str, Any]:
        return {'unit_id': self.unit_id, 'unit_name': self.unit_name, 'average': self.average}


@dataclass(frozen=True)
class StudentAverage:
    """学生平均分计算结果，每次请求重新计算，不做缓存"""
    student_id: str
    student_name: str
    average: float
    unit_averages: List[UnitAverage] = field(default_factory=list)

    def unit_average(self, unit_id: str) -> Optional[float]:
        """获取指定单元的平均分，不存在时返回None"""
        for unit_average in self.unit_averages:
            if unit_average.unit_id == unit_id:
                return unit_average.average
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'student_id': self.student_id,
            'student_name': self.student_name,
            'average': self.average,
            'unit_averages': [ua.to_dict() for ua in self.unit_averages]
        }


@dataclass(frozen=True)
class GradeRangeBucket:
    """成绩区间分布"""
    min: float
    max: float
    count: int
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min': self.min,
            'max': self.max,
            'count': self.count,
            'percentage': self.percentage
        }
