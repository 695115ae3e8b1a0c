# 公式配置服务
# 更新单元/班级公式前的校验，以及结构变化后的公式失效检查
import logging
from typing import Dict, Any, List, Optional, Union

from ..calculation.formulas import FormulaError, FormulaValidationError, validate_formula
from ..domain.enums import FormulaErrorKind, FormulaType
from ..domain.models import FormulaSpec, SchoolClass

logger = logging.getLogger(__name__)


def prepare_formula_update(formula_type: Union[FormulaType, str], formula: Optional[str],
                           child_count: int) -> FormulaSpec:
    """
    校验并构造待保存的公式配置

    Args:
        formula_type: simple 或 personalized
        formula: 公式文本，simple类型时忽略
        child_count: 当前子项数量（单元的评价项数或班级的单元数）

    Returns:
        可直接保存的公式配置

    Raises:
        FormulaValidationError: 没有子项、个性化公式为空或公式不合法
    """
    formula_type = FormulaType(formula_type)

    if child_count <= 0:
        raise FormulaValidationError(
            FormulaErrorKind.NO_CHILDREN,
            "没有子项时不能设置平均分公式，请先添加单元或评价项"
        )

    if formula_type == FormulaType.SIMPLE:
        return FormulaSpec.simple()

    if formula is None or formula.strip() == '':
        raise FormulaValidationError(
            FormulaErrorKind.EMPTY_FORMULA,
            "个性化平均分必须提供公式"
        )

    validate_formula(formula, child_count)
    logger.info(f"公式校验通过: {formula!r} (子项数: {child_count})")
    return FormulaSpec.personalized(formula)


def revalidate_formula(spec: FormulaSpec, child_count: int) -> List[FormulaError]:
    """结构变化后重新检查公式，返回发现的问题，简单平均永远没有问题"""
    if not spec.is_personalized:
        return []

    if child_count <= 0:
        return [FormulaValidationError(
            FormulaErrorKind.NO_CHILDREN,
            "公式所属的单元或班级已没有子项"
        )]

    try:
        validate_formula(spec.expression or '', child_count)
    except FormulaError as e:
        return [e]
    return []


def stale_formulas(school_class: SchoolClass) -> List[Dict[str, Any]]:
    """列出班级及其单元中已经失效的个性化公式"""
    problems = []

    for error in revalidate_formula(school_class.formula, len(school_class.units)):
        problems.append({
            'scope': 'class',
            'id': school_class.id,
            'name': school_class.name,
            'formula': school_class.formula.expression,
            'child_count': len(school_class.units),
            'error': error.to_dict()
        })

    for unit in school_class.ordered_units():
        child_count = len(unit.evaluation_items)
        for error in revalidate_formula(unit.formula, child_count):
            problems.append({
                'scope': 'unit',
                'id': unit.id,
                'name': unit.name,
                'formula': unit.formula.expression,
                'child_count': child_count,
                'error': error.to_dict()
            })

    if problems:
        logger.warning(f"班级 {school_class.id} 有{len(problems)}个公式需要更新")
    return problems
