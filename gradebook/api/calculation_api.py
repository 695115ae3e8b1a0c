from fastapi import APIRouter, HTTPException, Depends
from typing import List, Dict, Any
import logging

from ..schemas.request_schemas import (
    ClassPayload,
    GradebookRequest,
    ClassSummaryRequest,
    GradeDistributionRequest,
    TopStudentsRequest,
    UnitBreakdownRequest,
    FormulaValidateRequest,
    FormulaEvaluateRequest
)
from ..schemas.response_schemas import (
    FormulaValidationResponse,
    FormulaEvaluationResponse,
    ClassAveragesResponse,
    UnitBreakdownResponse,
    ClassSummaryResponse,
    GradeDistributionResponse,
    TopStudentsResponse,
    UnitStatisticsResponse,
    ClassOverviewResponse
)
from ..calculation.formulas import FormulaError, evaluate_formula
from ..services.report_service import ReportService, UnitNotFoundError
from ..services.formula_service import prepare_formula_update, stale_formulas

logger = logging.getLogger(__name__)
router = APIRouter()


def get_report_service() -> ReportService:
    """获取报告服务实例"""
    return ReportService()


def _formula_error(e: FormulaError) -> HTTPException:
    logger.warning(f"公式错误: {e.kind.value} - {e.message}")
    return HTTPException(status_code=400, detail=e.to_dict())


# 公式接口
@router.post("/formulas/validate", response_model=FormulaValidationResponse)
async def validate_formula_endpoint(request: FormulaValidateRequest):
    """校验单元或班级的平均分公式"""
    try:
        spec = prepare_formula_update(request.formula_type, request.formula, request.child_count)
        return {"valid": True, "formula": spec.to_dict()}
    except FormulaError as e:
        raise _formula_error(e)


@router.post("/formulas/evaluate", response_model=FormulaEvaluationResponse)
async def evaluate_formula_endpoint(request: FormulaEvaluateRequest):
    """按给定数值计算公式"""
    try:
        result = evaluate_formula(request.formula, request.bindings)
        return {"formula": request.formula, "result": result}
    except FormulaError as e:
        raise _formula_error(e)


@router.post("/formulas/stale", response_model=List[Dict[str, Any]])
async def list_stale_formulas(request: ClassPayload):
    """列出结构变化后已失效的个性化公式"""
    return stale_formulas(request.to_domain())


# 平均分接口
@router.post("/averages", response_model=ClassAveragesResponse)
async def get_class_averages(
    request: GradebookRequest,
    report_service: ReportService = Depends(get_report_service)
):
    """计算班级所有学生的平均分"""
    try:
        return report_service.class_averages(*request.to_domain())
    except FormulaError as e:
        raise _formula_error(e)
    except Exception as e:
        logger.error(f"平均分计算失败: {str(e)}")
        raise HTTPException(status_code=500, detail="平均分计算失败")


@router.post("/averages/unit-breakdown", response_model=UnitBreakdownResponse)
async def get_unit_breakdown(
    request: UnitBreakdownRequest,
    report_service: ReportService = Depends(get_report_service)
):
    """单个学生的单元平均分及成绩明细"""
    school_class, students, scores = request.to_domain()
    student = next((s for s in students if s.id == request.student_id), None)
    if student is None:
        raise HTTPException(status_code=404, detail=f"学生不存在: {request.student_id}")

    try:
        return report_service.unit_breakdown(school_class, request.unit_id, student, scores)
    except UnitNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FormulaError as e:
        raise _formula_error(e)


# 报告接口
@router.post("/reports/class-summary", response_model=ClassSummaryResponse)
async def get_class_summary(
    request: ClassSummaryRequest,
    report_service: ReportService = Depends(get_report_service)
):
    """班级成绩概览"""
    try:
        return report_service.class_summary(*request.to_domain(), pass_mark=request.pass_mark)
    except FormulaError as e:
        raise _formula_error(e)
    except Exception as e:
        logger.error(f"班级概览生成失败: {str(e)}")
        raise HTTPException(status_code=500, detail="班级概览生成失败")


@router.post("/reports/grade-distribution", response_model=GradeDistributionResponse)
async def get_grade_distribution(
    request: GradeDistributionRequest,
    report_service: ReportService = Depends(get_report_service)
):
    """成绩区间分布"""
    try:
        return report_service.grade_distribution(*request.to_domain(), unit_id=request.unit_id)
    except UnitNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FormulaError as e:
        raise _formula_error(e)
    except Exception as e:
        logger.error(f"成绩分布生成失败: {str(e)}")
        raise HTTPException(status_code=500, detail="成绩分布生成失败")


@router.post("/reports/top-students", response_model=TopStudentsResponse)
async def get_top_students(
    request: TopStudentsRequest,
    report_service: ReportService = Depends(get_report_service)
):
    """成绩排名"""
    try:
        return report_service.top_students(
            *request.to_domain(), count=request.count, unit_id=request.unit_id
        )
    except UnitNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FormulaError as e:
        raise _formula_error(e)
    except Exception as e:
        logger.error(f"排名报告生成失败: {str(e)}")
        raise HTTPException(status_code=500, detail="排名报告生成失败")


@router.post("/reports/unit-statistics", response_model=UnitStatisticsResponse)
async def get_unit_statistics(
    request: GradebookRequest,
    report_service: ReportService = Depends(get_report_service)
):
    """各单元统计"""
    try:
        return report_service.unit_statistics(*request.to_domain())
    except FormulaError as e:
        raise _formula_error(e)
    except Exception as e:
        logger.error(f"单元统计生成失败: {str(e)}")
        raise HTTPException(status_code=500, detail="单元统计生成失败")


@router.post("/reports/class-overview", response_model=ClassOverviewResponse)
async def get_class_overview(
    request: GradebookRequest,
    report_service: ReportService = Depends(get_report_service)
):
    """班级概况（平均分及各单元平均分）"""
    try:
        return report_service.class_overview(*request.to_domain())
    except FormulaError as e:
        raise _formula_error(e)
    except Exception as e:
        logger.error(f"班级概况生成失败: {str(e)}")
        raise HTTPException(status_code=500, detail="班级概况生成失败")
