# 成绩册测试公共数据
#
# 班级 c1 两个单元:
#   u1 个性化公式 (N1*0.6)+(N2*0.4)，评价项 a1、a2
#   u2 简单平均，评价项 b1、b2
# 学生单元平均分:
#   s1: u1=7.6  u2=8.0  总评=7.8
#   s2: u1=5.0  u2=5.0  总评=5.0
#   s3: u1=3.4  u2=6.0（缺少b2）  总评=4.7
import pytest

from gradebook.calculation.engine import AveragingEngine
from gradebook.domain import (
    FormulaSpec, EvaluationItem, Unit, SchoolClass, Student, Score
)

UNIT_FORMULA = "(N1*0.6)+(N2*0.4)"


def build_class(class_formula: FormulaSpec = None) -> SchoolClass:
    unit1 = Unit(
        id="u1",
        name="第一单元",
        position=1,
        formula=FormulaSpec.personalized(UNIT_FORMULA),
        evaluation_items=[
            EvaluationItem("a1", "测验", 1, unit_id="u1"),
            EvaluationItem("a2", "作业", 2, unit_id="u1"),
        ]
    )
    unit2 = Unit(
        id="u2",
        name="第二单元",
        position=2,
        evaluation_items=[
            EvaluationItem("b1", "测验", 1, unit_id="u2"),
            EvaluationItem("b2", "作业", 2, unit_id="u2"),
        ]
    )
    return SchoolClass(
        id="c1",
        name="三年级一班",
        units=[unit2, unit1],
        formula=class_formula or FormulaSpec.simple()
    )


STUDENTS = [
    Student("s1", "张三", "2024001"),
    Student("s2", "李四", "2024002"),
    Student("s3", "王五", None),
]

SCORES = [
    Score("s1", "a1", 8.0), Score("s1", "a2", 7.0),
    Score("s1", "b1", 9.0), Score("s1", "b2", 7.0),
    Score("s2", "a1", 5.0), Score("s2", "a2", 5.0),
    Score("s2", "b1", 4.0), Score("s2", "b2", 6.0),
    Score("s3", "a1", 3.0), Score("s3", "a2", 4.0),
    Score("s3", "b1", 6.0),
]


@pytest.fixture
def school_class():
    return build_class()


@pytest.fixture
def students():
    return list(STUDENTS)


@pytest.fixture
def scores():
    return list(SCORES)


@pytest.fixture
def engine():
    return AveragingEngine(fallback_policy="simple", max_workers=1)


@pytest.fixture
def strict_engine():
    return AveragingEngine(fallback_policy="raise", max_workers=1)


@pytest.fixture
def gradebook_payload():
    """与 build_class 相同数据的API请求体"""
    return {
        "school_class": {
            "id": "c1",
            "name": "三年级一班",
            "formula": {"type": "simple"},
            "units": [
                {
                    "id": "u1",
                    "name": "第一单元",
                    "position": 1,
                    "formula": {"type": "personalized", "formula": UNIT_FORMULA},
                    "evaluation_items": [
                        {"id": "a1", "name": "测验", "position": 1},
                        {"id": "a2", "name": "作业", "position": 2}
                    ]
                },
                {
                    "id": "u2",
                    "name": "第二单元",
                    "position": 2,
                    "evaluation_items": [
                        {"id": "b1", "name": "测验", "position": 1},
                        {"id": "b2", "name": "作业", "position": 2}
                    ]
                }
            ]
        },
        "students": [
            {"id": s.id, "name": s.name, "registration": s.registration} for s in STUDENTS
        ],
        "scores": [
            {"student_id": s.student_id, "evaluation_item_id": s.evaluation_item_id, "value": s.value}
            for s in SCORES
        ]
    }
