# 平均分计算模块
from .formulas import (
    FormulaError,
    FormulaValidationError,
    FormulaEvaluationError,
    FormulaChildCountMismatchError,
    CompiledFormula,
    compile_formula,
    validate_formula,
    evaluate_formula,
    referenced_indices
)
from .engine import (
    AveragingStrategy,
    SimpleMeanStrategy,
    PersonalizedFormulaStrategy,
    AveragingEngine,
    collect_unit_averages,
    get_averaging_engine
)
from . import statistics

__all__ = [
    'FormulaError',
    'FormulaValidationError',
    'FormulaEvaluationError',
    'FormulaChildCountMismatchError',
    'CompiledFormula',
    'compile_formula',
    'validate_formula',
    'evaluate_formula',
    'referenced_indices',
    'AveragingStrategy',
    'SimpleMeanStrategy',
    'PersonalizedFormulaStrategy',
    'AveragingEngine',
    'collect_unit_averages',
    'get_averaging_engine',
    'statistics'
]
