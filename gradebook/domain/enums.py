# 领域枚举定义
import enum


class FormulaType(enum.Enum):
    """平均分公式类型枚举"""
    SIMPLE = "simple"
    PERSONALIZED = "personalized"


class FormulaErrorKind(enum.Enum):
    """公式错误类型枚举"""
    INVALID_CHARACTERS = "invalid_characters"
    CONSECUTIVE_OPERATORS = "consecutive_operators"
    LEADING_OPERATOR = "leading_operator"
    TRAILING_OPERATOR = "trailing_operator"
    UNBALANCED_PARENTHESES = "unbalanced_parentheses"
    REFERENCE_OUT_OF_RANGE = "reference_out_of_range"
    MISSING_REFERENCE = "missing_reference"
    EXPLICIT_DIVISION_BY_ZERO = "explicit_division_by_zero"
    MALFORMED_EXPRESSION = "malformed_expression"
    RUNTIME_DIVISION_BY_ZERO = "runtime_division_by_zero"
    NON_FINITE_RESULT = "non_finite_result"
    FORMULA_CHILD_COUNT_MISMATCH = "formula_child_count_mismatch"
    EMPTY_FORMULA = "empty_formula"
    NO_CHILDREN = "no_children"


class FallbackPolicy(enum.Enum):
    """个性化公式计算失败时的处理策略"""
    SIMPLE = "simple"
    RAISE = "raise"
