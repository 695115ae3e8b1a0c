# 业务服务模块
from .report_service import ReportService, UnitNotFoundError
from .formula_service import prepare_formula_update, revalidate_formula, stale_formulas

__all__ = [
    'ReportService',
    'UnitNotFoundError',
    'prepare_formula_update',
    'revalidate_formula',
    'stale_formulas'
]
