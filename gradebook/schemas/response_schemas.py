from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime


class FormulaValidationResponse(BaseModel):
    """公式校验响应"""
    valid: bool
    formula: Dict[str, Any] = Field(..., description="可保存的公式配置")


class FormulaEvaluationResponse(BaseModel):
    """公式计算响应"""
    formula: str
    result: float = Field(..., description="计算结果（未四舍五入）")


class UnitAverageResponse(BaseModel):
    unit_id: str
    unit_name: str
    average: float


class StudentAverageResponse(BaseModel):
    """学生平均分"""
    student_id: str
    student_name: str
    average: float
    unit_averages: List[UnitAverageResponse] = []


class ClassAveragesResponse(BaseModel):
    class_id: str
    class_name: str
    student_averages: List[StudentAverageResponse]


class GradeEntryResponse(BaseModel):
    evaluation_item_id: str
    evaluation_item_name: str
    value: float


class UnitBreakdownResponse(BaseModel):
    """单元平均分明细"""
    student_id: str
    student_name: str
    unit_id: str
    unit_name: str
    average: float
    grades: List[GradeEntryResponse]


class ClassSummaryResponse(BaseModel):
    """班级成绩概览"""
    class_id: str
    class_name: str
    class_average: float = Field(..., description="班级平均分（学生平均分的简单平均）")
    total_students: int
    students_approved: int = Field(..., description="及格人数")
    approval_rate: float = Field(..., ge=0.0, le=100.0, description="及格率百分比")
    highest_grade: float
    lowest_grade: float
    median_grade: float
    generated_at: datetime


class GradeRangeBucketResponse(BaseModel):
    min: float
    max: float
    count: int
    percentage: float = Field(..., ge=0.0, le=100.0)


class GradeDistributionResponse(BaseModel):
    """成绩区间分布"""
    class_id: str
    class_name: str
    unit_id: Optional[str] = None
    unit_name: Optional[str] = None
    distribution: List[GradeRangeBucketResponse]
    total_students: int
    generated_at: datetime


class TopStudentResponse(BaseModel):
    student_id: str
    student_name: str
    registration: Optional[str] = None
    rank: int
    average: float = Field(..., description="学生总评平均分")
    unit_grade: Optional[float] = Field(None, description="按单元排名时的单元平均分")


class TopStudentsResponse(BaseModel):
    """成绩排名"""
    class_id: str
    class_name: str
    unit_id: Optional[str] = None
    unit_name: Optional[str] = None
    top_students: List[TopStudentResponse]
    total_students: int
    generated_at: datetime


class UnitStatisticsEntry(BaseModel):
    unit_id: str
    unit_name: str
    average: float
    highest_grade: float
    lowest_grade: float
    median_grade: float


class UnitStatisticsResponse(BaseModel):
    """单元统计"""
    class_id: str
    class_name: str
    units: List[UnitStatisticsEntry]
    generated_at: datetime


class ClassOverviewResponse(BaseModel):
    """班级概况"""
    class_id: str
    class_name: str
    student_count: int
    average: float
    unit_averages: List[UnitAverageResponse]
