from pydantic import BaseModel, Field
from typing import List, Optional, Tuple

from ..domain.enums import FormulaType
from ..domain.models import (
    FormulaSpec, EvaluationItem, Unit, SchoolClass, Student, Score
)


class FormulaSpecPayload(BaseModel):
    """公式配置"""
    type: FormulaType = Field(FormulaType.SIMPLE, description="公式类型: simple / personalized")
    formula: Optional[str] = Field(None, description="个性化公式，如 (N1*0.6)+(N2*0.4)", max_length=500)

    def to_domain(self) -> FormulaSpec:
        return FormulaSpec.from_storage(self.type.value, self.formula)


class EvaluationItemPayload(BaseModel):
    """评价项"""
    id: str = Field(..., description="评价项ID", min_length=1)
    name: str = Field(..., description="评价项名称")
    position: int = Field(..., description="序号，决定公式中的N编号")


class UnitPayload(BaseModel):
    """单元"""
    id: str = Field(..., description="单元ID", min_length=1)
    name: str = Field(..., description="单元名称")
    position: int = Field(..., description="序号，决定班级公式中的N编号")
    formula: FormulaSpecPayload = Field(default_factory=FormulaSpecPayload, description="单元平均分公式")
    evaluation_items: List[EvaluationItemPayload] = Field(default_factory=list, description="评价项列表")

    def to_domain(self) -> Unit:
        return Unit(
            id=self.id,
            name=self.name,
            position=self.position,
            formula=self.formula.to_domain(),
            evaluation_items=[
                EvaluationItem(item.id, item.name, item.position, unit_id=self.id)
                for item in self.evaluation_items
            ]
        )


class ClassPayload(BaseModel):
    """班级结构"""
    id: str = Field(..., description="班级ID", min_length=1)
    name: str = Field(..., description="班级名称")
    code: Optional[str] = Field(None, description="班级代码")
    formula: FormulaSpecPayload = Field(default_factory=FormulaSpecPayload, description="班级平均分公式")
    units: List[UnitPayload] = Field(default_factory=list, description="单元列表")

    def to_domain(self) -> SchoolClass:
        return SchoolClass(
            id=self.id,
            name=self.name,
            code=self.code,
            formula=self.formula.to_domain(),
            units=[unit.to_domain() for unit in self.units]
        )


class StudentPayload(BaseModel):
    """学生"""
    id: str = Field(..., description="学生ID", min_length=1)
    name: str = Field(..., description="学生姓名")
    registration: Optional[str] = Field(None, description="学号")


class ScorePayload(BaseModel):
    """成绩"""
    student_id: str = Field(..., description="学生ID")
    evaluation_item_id: str = Field(..., description="评价项ID")
    value: float = Field(..., description="成绩(0-10分)", ge=0, le=10)


class GradebookRequest(BaseModel):
    """成绩册计算请求：调用方已完成鉴权并取出全部数据"""
    school_class: ClassPayload = Field(..., description="班级结构（含单元、评价项和公式配置）")
    students: List[StudentPayload] = Field(default_factory=list, description="学生名单（按输出顺序）")
    scores: List[ScorePayload] = Field(default_factory=list, description="成绩列表")

    def to_domain(self) -> Tuple[SchoolClass, List[Student], List[Score]]:
        school_class = self.school_class.to_domain()
        students = [Student(s.id, s.name, s.registration) for s in self.students]
        scores = [Score(s.student_id, s.evaluation_item_id, s.value) for s in self.scores]
        return school_class, students, scores

    model_config = {
        "json_schema_extra": {
            "example": {
                "school_class": {
                    "id": "class-1",
                    "name": "三年级一班",
                    "formula": {"type": "simple"},
                    "units": [
                        {
                            "id": "unit-1",
                            "name": "第一单元",
                            "position": 1,
                            "formula": {"type": "personalized", "formula": "(N1*0.6)+(N2*0.4)"},
                            "evaluation_items": [
                                {"id": "item-1", "name": "测验", "position": 1},
                                {"id": "item-2", "name": "作业", "position": 2}
                            ]
                        }
                    ]
                },
                "students": [{"id": "s1", "name": "张三", "registration": "2024001"}],
                "scores": [
                    {"student_id": "s1", "evaluation_item_id": "item-1", "value": 8.0},
                    {"student_id": "s1", "evaluation_item_id": "item-2", "value": 7.0}
                ]
            }
        }
    }


class ClassSummaryRequest(GradebookRequest):
    pass_mark: Optional[float] = Field(None, description="及格线，不指定时使用配置值", ge=0, le=10)


class GradeDistributionRequest(GradebookRequest):
    unit_id: Optional[str] = Field(None, description="单元ID，不指定时统计总评平均分")


class TopStudentsRequest(GradebookRequest):
    count: Optional[int] = Field(None, description="返回人数，不指定时使用配置值", ge=1)
    unit_id: Optional[str] = Field(None, description="单元ID，指定时按该单元平均分排名")


class UnitBreakdownRequest(GradebookRequest):
    unit_id: str = Field(..., description="单元ID")
    student_id: str = Field(..., description="学生ID")


class FormulaValidateRequest(BaseModel):
    """公式校验请求"""
    formula_type: FormulaType = Field(FormulaType.PERSONALIZED, description="公式类型")
    formula: Optional[str] = Field(None, description="公式文本", max_length=500)
    child_count: int = Field(..., description="子项数量（单元的评价项数或班级的单元数）", ge=0)


class FormulaEvaluateRequest(BaseModel):
    """公式计算请求"""
    formula: str = Field(..., description="公式文本", max_length=500)
    bindings: List[float] = Field(..., description="N1..Nk 对应的数值")
