# 平均分计算引擎测试
import logging

import pytest

from gradebook.calculation.engine import (
    AveragingEngine, AveragingStrategy, SimpleMeanStrategy, PersonalizedFormulaStrategy,
    collect_unit_averages
)
from gradebook.calculation.formulas import FormulaChildCountMismatchError, FormulaEvaluationError
from gradebook.domain import (
    FormulaSpec, FormulaType, FormulaErrorKind, FallbackPolicy,
    EvaluationItem, Unit, SchoolClass, Student, Score
)

from conftest import build_class


def _unit(formula=None, item_count=2, unit_id="u"):
    return Unit(
        id=unit_id,
        name="单元",
        position=1,
        formula=formula or FormulaSpec.simple(),
        evaluation_items=[
            EvaluationItem(f"i{i}", f"评价项{i}", i) for i in range(1, item_count + 1)
        ]
    )


def _scores(student_id, values):
    return [Score(student_id, f"i{i}", value) for i, value in enumerate(values, start=1)]


class TestStrategies:
    """聚合策略测试"""

    def test_simple_mean(self):
        assert SimpleMeanStrategy().calculate([8.0, 7.0], FormulaSpec.simple()) == 7.5
        assert SimpleMeanStrategy().calculate([], FormulaSpec.simple()) == 0.0

    def test_personalized_formula(self):
        spec = FormulaSpec.personalized("(N1*0.6)+(N2*0.4)")
        assert PersonalizedFormulaStrategy().calculate([8.0, 7.0], spec) == pytest.approx(7.6)

    def test_personalized_with_changed_child_count(self):
        spec = FormulaSpec.personalized("(N1*0.6)+(N2*0.4)")
        with pytest.raises(FormulaChildCountMismatchError) as exc_info:
            PersonalizedFormulaStrategy().calculate([8.0], spec)
        assert exc_info.value.kind == FormulaErrorKind.FORMULA_CHILD_COUNT_MISMATCH
        assert exc_info.value.details == {'expected': 2, 'actual': 1}

    def test_algorithm_info(self):
        info = AveragingEngine().get_algorithm_info()
        assert set(info) == {'simple', 'personalized'}
        assert info['simple']['name'] == 'SimpleMean'


class TestUnitAverage:
    """单元平均分测试"""

    def setup_method(self):
        self.engine = AveragingEngine(fallback_policy="simple", max_workers=1)

    def test_simple_unit(self):
        assert self.engine.compute_unit_average(_unit(), _scores("s1", [8.0, 7.0])) == 7.5

    def test_personalized_unit(self):
        unit = _unit(FormulaSpec.personalized("(N1*0.6)+(N2*0.4)"))
        result = self.engine.compute_unit_average(unit, _scores("s1", [8.0, 7.0]))
        assert result == pytest.approx(7.6)

    def test_missing_scores_are_excluded(self):
        """缺失成绩不按0计算"""
        unit = _unit(item_count=3)
        scores = [Score("s1", "i1", 8.0), Score("s1", "i3", 6.0)]
        assert self.engine.compute_unit_average(unit, scores) == 7.0

    def test_no_scores(self):
        assert self.engine.compute_unit_average(_unit(), []) == 0.0
        unit = _unit(FormulaSpec.personalized("N1 + N2"))
        assert self.engine.compute_unit_average(unit, []) == 0.0

    def test_items_bound_by_position(self):
        """N序号由评价项序号决定，与列表顺序无关"""
        unit = Unit(
            id="u",
            name="单元",
            position=1,
            formula=FormulaSpec.personalized("N1*0.6 + N2*0.4"),
            evaluation_items=[
                EvaluationItem("second", "第二项", 2),
                EvaluationItem("first", "第一项", 1),
            ]
        )
        scores = [Score("s1", "first", 10.0), Score("s1", "second", 0.0)]
        assert self.engine.compute_unit_average(unit, scores) == pytest.approx(6.0)

    def test_fallback_to_simple_mean(self, caplog):
        """评价项成绩缺失导致公式子项数不符时回退为简单平均"""
        unit = _unit(FormulaSpec.personalized("(N1*0.6)+(N2*0.4)"))

        with caplog.at_level(logging.WARNING):
            result = self.engine.compute_unit_average(unit, [Score("s1", "i1", 8.0)])

        assert result == 8.0
        assert any("formula_child_count_mismatch" in record.getMessage() for record in caplog.records)

    def test_fallback_on_runtime_division_by_zero(self):
        unit = _unit(FormulaSpec.personalized("N1 / N2"))
        assert self.engine.compute_unit_average(unit, _scores("s1", [5.0, 0.0])) == 2.5

    def test_raise_policy(self, strict_engine):
        unit = _unit(FormulaSpec.personalized("(N1*0.6)+(N2*0.4)"))
        with pytest.raises(FormulaChildCountMismatchError):
            strict_engine.compute_unit_average(unit, [Score("s1", "i1", 8.0)])

        unit = _unit(FormulaSpec.personalized("N1 / N2"))
        with pytest.raises(FormulaEvaluationError) as exc_info:
            strict_engine.compute_unit_average(unit, _scores("s1", [5.0, 0.0]))
        assert exc_info.value.kind == FormulaErrorKind.RUNTIME_DIVISION_BY_ZERO

    def test_policy_from_enum(self):
        engine = AveragingEngine(fallback_policy=FallbackPolicy.RAISE)
        assert engine.fallback_policy == FallbackPolicy.RAISE

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            AveragingEngine(fallback_policy="ignore")

    def test_register_strategy(self):
        class HighestStrategy(AveragingStrategy):
            def calculate(self, values, formula):
                return max(values) if values else 0.0

            def get_algorithm_info(self):
                return {'name': 'Highest', 'version': '1.0'}

        self.engine.register_strategy(FormulaType.SIMPLE, HighestStrategy())
        assert self.engine.compute_unit_average(_unit(), _scores("s1", [8.0, 7.0])) == 8.0


class TestUnitBreakdown:
    """单元成绩明细测试"""

    def test_breakdown(self, engine, school_class, scores):
        unit = school_class.find_unit("u2")
        breakdown = engine.compute_unit_breakdown(unit, Student("s3", "王五"), scores)

        assert breakdown['average'] == 6.0
        assert breakdown['unit_name'] == "第二单元"
        assert breakdown['grades'] == [
            {'evaluation_item_id': 'b1', 'evaluation_item_name': '测验', 'value': 6.0}
        ]

    def test_breakdown_ignores_other_students(self, engine, school_class, scores):
        unit = school_class.find_unit("u1")
        breakdown = engine.compute_unit_breakdown(unit, Student("s1", "张三"), scores)

        assert breakdown['average'] == pytest.approx(7.6)
        assert [grade['value'] for grade in breakdown['grades']] == [8.0, 7.0]


class TestStudentAverages:
    """学生平均分测试"""

    def test_student_average(self, engine, school_class, scores):
        result = engine.compute_student_average(school_class, Student("s1", "张三"), scores)

        assert [ua.unit_id for ua in result.unit_averages] == ["u1", "u2"]
        assert result.unit_average("u1") == pytest.approx(7.6)
        assert result.unit_average("u2") == pytest.approx(8.0)
        assert result.average == pytest.approx(7.8)

    def test_personalized_class_formula(self, engine, scores):
        """班级公式按单元序号绑定单元平均分"""
        school_class = build_class(FormulaSpec.personalized("(N1 * 2 + N2 * 3) / 5"))
        result = engine.compute_student_average(school_class, Student("s1", "张三"), scores)

        u1 = 8.0 * 0.6 + 7.0 * 0.4
        u2 = (9.0 + 7.0) / 2
        assert abs(result.average - (u1 * 2 + u2 * 3) / 5) < 1e-9

    def test_student_without_units(self, engine):
        school_class = SchoolClass(id="c", name="空班级")
        result = engine.compute_student_average(school_class, Student("s1", "张三"), [])

        assert result.average == 0.0
        assert result.unit_averages == []

    def test_all_students_in_roster_order(self, engine, school_class, students, scores):
        results = engine.compute_all_student_averages(school_class, students, scores)

        assert [r.student_id for r in results] == ["s1", "s2", "s3"]
        assert [r.average for r in results] == pytest.approx([7.8, 5.0, 4.7])

    def test_student_without_scores(self, engine, school_class, scores):
        results = engine.compute_all_student_averages(
            school_class, [Student("s9", "新同学")], scores
        )
        assert results[0].average == 0.0
        assert [ua.average for ua in results[0].unit_averages] == [0.0, 0.0]

    def test_empty_roster(self, engine, school_class, scores):
        assert engine.compute_all_student_averages(school_class, [], scores) == []

    def test_parallel_matches_serial(self, engine, school_class, students, scores):
        serial = engine.compute_all_student_averages(school_class, students, scores, max_workers=1)
        parallel = engine.compute_all_student_averages(school_class, students, scores, max_workers=2)

        assert parallel == serial

    def test_collect_unit_averages(self, engine, school_class, students, scores):
        results = engine.compute_all_student_averages(school_class, students, scores)

        assert collect_unit_averages(results, "u2") == pytest.approx([8.0, 5.0, 6.0])
        assert collect_unit_averages(results, "missing") == []
