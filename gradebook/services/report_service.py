# 成绩报告服务
# 所有汇总（班级平均、单元平均）均为学生个人平均分的简单平均
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .. import config
from ..calculation import statistics
from ..calculation.engine import AveragingEngine, get_averaging_engine
from ..domain.models import SchoolClass, Score, Student, StudentAverage, Unit
from ..utils.precision_handler import round2, batch_format_dict

logger = logging.getLogger(__name__)


def _unit_column(unit_id: str) -> str:
    return f"unit:{unit_id}"


class UnitNotFoundError(LookupError):
    """报告请求的单元不属于该班级"""

    def __init__(self, unit_id: str, class_id: Optional[str] = None):
        message = f"单元不存在: {unit_id}"
        if class_id is not None:
            message = f"班级 {class_id} 中{message}"
        super().__init__(message)
        self.unit_id = unit_id
        self.class_id = class_id


class ReportService:
    """班级成绩报告服务，输入为调用方已取出的班级结构、学生名单和成绩"""

    def __init__(self, engine: Optional[AveragingEngine] = None,
                 pass_mark: Optional[float] = None, top_count: Optional[int] = None):
        self.engine = engine or get_averaging_engine()
        self.pass_mark = pass_mark if pass_mark is not None else config.PASS_MARK
        self.top_count = top_count if top_count is not None else config.TOP_COUNT

    def _student_averages(self, school_class: SchoolClass, students: Sequence[Student],
                          scores: Iterable[Score]) -> List[StudentAverage]:
        return self.engine.compute_all_student_averages(school_class, students, scores)

    def _averages_frame(self, school_class: SchoolClass, students: Sequence[Student],
                        student_averages: List[StudentAverage]) -> pd.DataFrame:
        """
        构建学生平均分表

        每行一个学生（按名单顺序），列为 student_id、student_name、registration、
        average 以及每个单元的ID（值为该学生的单元平均分）
        """
        unit_columns = {unit.id: _unit_column(unit.id) for unit in school_class.ordered_units()}
        columns = ['student_id', 'student_name', 'registration', 'average'] + list(unit_columns.values())

        rows = []
        for student, student_average in zip(students, student_averages):
            row = {
                'student_id': student.id,
                'student_name': student.name,
                'registration': student.registration,
                'average': student_average.average,
            }
            for unit_id, column in unit_columns.items():
                row[column] = student_average.unit_average(unit_id)
            rows.append(row)

        return pd.DataFrame(rows, columns=columns)

    def _require_unit(self, school_class: SchoolClass, unit_id: str) -> Unit:
        unit = school_class.find_unit(unit_id)
        if unit is None:
            raise UnitNotFoundError(unit_id, school_class.id)
        return unit

    @staticmethod
    def _column_values(frame: pd.DataFrame, column: str) -> List[float]:
        if frame.empty:
            return []
        return frame[column].dropna().astype(float).tolist()

    @staticmethod
    def _generated_at() -> datetime:
        return datetime.now(timezone.utc)

    def class_summary(self, school_class: SchoolClass, students: Sequence[Student],
                      scores: Iterable[Score], pass_mark: Optional[float] = None) -> Dict[str, Any]:
        """
        班级成绩概览

        Returns:
            班级平均分、及格人数、及格率、最高/最低/中位成绩
        """
        pass_mark = pass_mark if pass_mark is not None else self.pass_mark
        logger.info(f"生成班级概览报告: {school_class.id}, 学生数: {len(students)}")

        student_averages = self._student_averages(school_class, students, scores)
        averages = [student_average.average for student_average in student_averages]

        return {
            'class_id': school_class.id,
            'class_name': school_class.name,
            'class_average': statistics.mean(averages),
            'total_students': len(averages),
            'students_approved': statistics.count_approved(averages, pass_mark),
            'approval_rate': statistics.approval_rate(averages, pass_mark),
            'highest_grade': statistics.highest(averages),
            'lowest_grade': statistics.lowest(averages),
            'median_grade': statistics.median(averages),
            'generated_at': self._generated_at()
        }

    def grade_distribution(self, school_class: SchoolClass, students: Sequence[Student],
                           scores: Iterable[Score], unit_id: Optional[str] = None,
                           ranges: Sequence[Tuple[float, float]] = statistics.DEFAULT_GRADE_RANGES
                           ) -> Dict[str, Any]:
        """
        成绩区间分布

        Args:
            unit_id: 指定时统计该单元的学生单元平均分，否则统计学生总评平均分
            ranges: 成绩区间，默认 [0,4) [4,6) [6,8) [8,10]

        Raises:
            UnitNotFoundError: unit_id 不属于该班级
        """
        unit = self._require_unit(school_class, unit_id) if unit_id is not None else None
        logger.info(f"生成成绩分布报告: {school_class.id}, 单元: {unit_id or '全部'}")

        student_averages = self._student_averages(school_class, students, scores)
        frame = self._averages_frame(school_class, students, student_averages)
        values = self._column_values(frame, _unit_column(unit.id) if unit else 'average')
        distribution = statistics.distribute(values, ranges)

        return {
            'class_id': school_class.id,
            'class_name': school_class.name,
            'unit_id': unit.id if unit else None,
            'unit_name': unit.name if unit else None,
            'distribution': [bucket.to_dict() for bucket in distribution],
            'total_students': len(values),
            'generated_at': self._generated_at()
        }

    def top_students(self, school_class: SchoolClass, students: Sequence[Student],
                     scores: Iterable[Score], count: Optional[int] = None,
                     unit_id: Optional[str] = None) -> Dict[str, Any]:
        """
        成绩排名

        按平均分降序排名，成绩相同时保持名单顺序；指定unit_id时按该单元
        平均分排名，每条记录同时携带学生总评平均分
        """
        count = count if count is not None else self.top_count
        unit = self._require_unit(school_class, unit_id) if unit_id is not None else None
        logger.info(f"生成排名报告: {school_class.id}, 前{count}名, 单元: {unit_id or '全部'}")

        student_averages = self._student_averages(school_class, students, scores)
        frame = self._averages_frame(school_class, students, student_averages)
        ranking_column = _unit_column(unit.id) if unit else 'average'

        ranked = statistics.rank_top(
            [(index, float(value)) for index, value in frame[ranking_column].items()],
            count
        )

        top = []
        for index, rank, value in ranked:
            row = frame.loc[index]
            entry = {
                'student_id': row['student_id'],
                'student_name': row['student_name'],
                'registration': row['registration'],
                'rank': rank,
                'average': round2(row['average']) if unit else value,
            }
            if unit:
                entry['unit_grade'] = value
            top.append(entry)

        return {
            'class_id': school_class.id,
            'class_name': school_class.name,
            'unit_id': unit.id if unit else None,
            'unit_name': unit.name if unit else None,
            'top_students': top,
            'total_students': len(frame),
            'generated_at': self._generated_at()
        }

    def unit_statistics(self, school_class: SchoolClass, students: Sequence[Student],
                        scores: Iterable[Score]) -> Dict[str, Any]:
        """各单元统计：基于每个学生的单元平均分"""
        logger.info(f"生成单元统计报告: {school_class.id}")

        student_averages = self._student_averages(school_class, students, scores)
        frame = self._averages_frame(school_class, students, student_averages)

        units = []
        for unit in school_class.ordered_units():
            values = self._column_values(frame, _unit_column(unit.id))
            logger.debug(f"单元 {unit.id} 统计样本数: {len(values)}")
            units.append({
                'unit_id': unit.id,
                'unit_name': unit.name,
                'average': statistics.mean(values),
                'highest_grade': statistics.highest(values),
                'lowest_grade': statistics.lowest(values),
                'median_grade': statistics.median(values)
            })

        return {
            'class_id': school_class.id,
            'class_name': school_class.name,
            'units': units,
            'generated_at': self._generated_at()
        }

    def class_overview(self, school_class: SchoolClass, students: Sequence[Student],
                       scores: Iterable[Score]) -> Dict[str, Any]:
        """教师班级列表中的单个班级概况"""
        student_averages = self._student_averages(school_class, students, scores)
        frame = self._averages_frame(school_class, students, student_averages)

        return {
            'class_id': school_class.id,
            'class_name': school_class.name,
            'student_count': len(frame),
            'average': statistics.mean(self._column_values(frame, 'average')),
            'unit_averages': [
                {
                    'unit_id': unit.id,
                    'unit_name': unit.name,
                    'average': statistics.mean(self._column_values(frame, _unit_column(unit.id)))
                }
                for unit in school_class.ordered_units()
            ]
        }

    def class_averages(self, school_class: SchoolClass, students: Sequence[Student],
                       scores: Iterable[Score]) -> Dict[str, Any]:
        """班级所有学生的平均分明细"""
        student_averages = self._student_averages(school_class, students, scores)
        result = {
            'class_id': school_class.id,
            'class_name': school_class.name,
            'student_averages': [student_average.to_dict() for student_average in student_averages]
        }
        return batch_format_dict(result, 2)

    def unit_breakdown(self, school_class: SchoolClass, unit_id: str, student: Student,
                       scores: Iterable[Score]) -> Dict[str, Any]:
        """单个学生的单元平均分及各评价项成绩"""
        unit = self._require_unit(school_class, unit_id)
        breakdown = self.engine.compute_unit_breakdown(unit, student, scores)
        return batch_format_dict(breakdown, 2)
