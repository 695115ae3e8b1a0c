# 领域模型模块
from .enums import FormulaType, FormulaErrorKind, FallbackPolicy
from .models import (
    FormulaSpec,
    Score,
    EvaluationItem,
    Unit,
    SchoolClass,
    Student,
    UnitAverage,
    StudentAverage,
    GradeRangeBucket
)

__all__ = [
    'FormulaType',
    'FormulaErrorKind',
    'FallbackPolicy',
    'FormulaSpec',
    'Score',
    'EvaluationItem',
    'Unit',
    'SchoolClass',
    'Student',
    'UnitAverage',
    'StudentAverage',
    'GradeRangeBucket'
]
