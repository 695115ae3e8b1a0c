# 公式配置服务测试
import pytest

from gradebook.calculation.formulas import FormulaValidationError
from gradebook.domain import (
    FormulaSpec, FormulaType, FormulaErrorKind, EvaluationItem, Unit, SchoolClass
)
from gradebook.services.formula_service import (
    prepare_formula_update, revalidate_formula, stale_formulas
)


class TestPrepareFormulaUpdate:
    """公式更新校验测试"""

    def test_simple_formula(self):
        spec = prepare_formula_update(FormulaType.SIMPLE, "N1 + N2", 2)
        assert spec == FormulaSpec.simple()
        assert spec.expression is None

    def test_personalized_formula(self):
        spec = prepare_formula_update("personalized", "(N1*0.6)+(N2*0.4)", 2)
        assert spec.is_personalized
        assert spec.expression == "(N1*0.6)+(N2*0.4)"

    def test_no_children(self):
        with pytest.raises(FormulaValidationError) as exc_info:
            prepare_formula_update(FormulaType.PERSONALIZED, "N1", 0)
        assert exc_info.value.kind == FormulaErrorKind.NO_CHILDREN

        with pytest.raises(FormulaValidationError):
            prepare_formula_update(FormulaType.SIMPLE, None, 0)

    @pytest.mark.parametrize("formula", [None, "", "   "])
    def test_empty_personalized_formula(self, formula):
        with pytest.raises(FormulaValidationError) as exc_info:
            prepare_formula_update(FormulaType.PERSONALIZED, formula, 2)
        assert exc_info.value.kind == FormulaErrorKind.EMPTY_FORMULA

    def test_invalid_formula_is_surfaced(self):
        with pytest.raises(FormulaValidationError) as exc_info:
            prepare_formula_update(FormulaType.PERSONALIZED, "N1 * 2", 3)
        assert exc_info.value.kind == FormulaErrorKind.MISSING_REFERENCE
        assert exc_info.value.details['missing'] == [2, 3]

    def test_unknown_formula_type(self):
        with pytest.raises(ValueError):
            prepare_formula_update("weighted", "N1", 1)


class TestRevalidateFormula:
    """结构变化后的公式检查测试"""

    def setup_method(self):
        self.spec = FormulaSpec.personalized("(N1*0.6)+(N2*0.4)")

    def test_simple_never_reports_problems(self):
        assert revalidate_formula(FormulaSpec.simple(), 0) == []
        assert revalidate_formula(FormulaSpec.simple(), 5) == []

    def test_unchanged_child_count(self):
        assert revalidate_formula(self.spec, 2) == []

    def test_child_added(self):
        problems = revalidate_formula(self.spec, 3)
        assert len(problems) == 1
        assert problems[0].kind == FormulaErrorKind.MISSING_REFERENCE
        assert problems[0].details['missing'] == [3]

    def test_child_removed(self):
        problems = revalidate_formula(self.spec, 1)
        assert problems[0].kind == FormulaErrorKind.REFERENCE_OUT_OF_RANGE

    def test_all_children_removed(self):
        problems = revalidate_formula(self.spec, 0)
        assert problems[0].kind == FormulaErrorKind.NO_CHILDREN


class TestStaleFormulas:
    """失效公式列表测试"""

    def test_stale_unit_and_class_formulas(self):
        unit = Unit(
            id="u1",
            name="第一单元",
            position=1,
            formula=FormulaSpec.personalized("N1 + N2"),
            evaluation_items=[EvaluationItem(f"i{i}", f"评价项{i}", i) for i in range(1, 4)]
        )
        school_class = SchoolClass(
            id="c1",
            name="三年级一班",
            units=[unit],
            formula=FormulaSpec.personalized("(N1 + N2) / 2")
        )

        problems = stale_formulas(school_class)

        assert [(p['scope'], p['id']) for p in problems] == [('class', 'c1'), ('unit', 'u1')]
        assert problems[0]['error']['kind'] == 'reference_out_of_range'
        assert problems[1]['error']['kind'] == 'missing_reference'
        assert problems[1]['child_count'] == 3

    def test_valid_class(self, school_class):
        assert stale_formulas(school_class) == []


class TestFormulaSpecFromStorage:

    def test_personalized(self):
        spec = FormulaSpec.from_storage("personalized", "N1 + N2")
        assert spec == FormulaSpec.personalized("N1 + N2")

    def test_missing_type_is_simple(self):
        assert FormulaSpec.from_storage(None, "N1 + N2") == FormulaSpec.simple()

    def test_simple_discards_text(self):
        assert FormulaSpec.from_storage("simple", "N1 + N2").expression is None
