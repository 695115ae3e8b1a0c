# 个性化平均分公式引擎
# 语法: 引用 N1..Nk、十进制数字、+ - * /、括号；一元负号只能用于数字或引用
import logging
import re
from collections import namedtuple
from functools import lru_cache
from typing import Dict, Any, List, Sequence, Tuple

import numpy as np

from ..domain.enums import FormulaErrorKind

logger = logging.getLogger(__name__)

_CHARSET_PATTERN = re.compile(r'^(?:N[0-9]+|[0-9.+\-*/()\s])*$')
_CONSECUTIVE_OPERATORS_PATTERN = re.compile(r'[+\-*/]{2,}')
_TRAILING_OPERATOR_PATTERN = re.compile(r'[+\-*/]$')
_LEADING_OPERATOR_PATTERN = re.compile(r'^[+*/]')
_EXPLICIT_DIVISION_BY_ZERO_PATTERN = re.compile(r'/0(?![0-9])')
_TOKEN_PATTERN = re.compile(
    r'\s*(?:(?P<number>[0-9]+(?:\.[0-9]*)?|\.[0-9]+)'
    r'|N(?P<reference>[0-9]+)'
    r'|(?P<operator>[+\-*/])'
    r'|(?P<paren>[()]))'
)

# 括号最大嵌套层数
MAX_NESTING_DEPTH = 100

Token = namedtuple('Token', ['kind', 'value', 'position'])


class FormulaError(ValueError):
    """公式错误基类，kind标识错误类型，details携带附加信息"""

    def __init__(self, kind: FormulaErrorKind, message: str, **details):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'message': self.message,
            'details': self.details
        }


class FormulaValidationError(FormulaError):
    """公式编写错误，必须阻止保存"""


class FormulaEvaluationError(FormulaError):
    """公式求值时的运行错误"""


class FormulaChildCountMismatchError(FormulaError):
    """公式引用数量与当前子项数量不一致（如单元新增或删除了评价项）"""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            FormulaErrorKind.FORMULA_CHILD_COUNT_MISMATCH,
            f"公式按{expected}个子项编写，但当前有{actual}个子项",
            expected=expected,
            actual=actual
        )


def _validation_error(kind: FormulaErrorKind, message: str, **details) -> FormulaValidationError:
    return FormulaValidationError(kind, message, **details)


def tokenize(expression: str) -> List[Token]:
    """将公式拆分为词法单元，空白被忽略"""
    tokens = []
    position = 0
    length = len(expression)

    while position < length:
        if expression[position:].strip() == '':
            break

        match = _TOKEN_PATTERN.match(expression, position)
        if not match:
            raise _validation_error(
                FormulaErrorKind.INVALID_CHARACTERS,
                f"公式在位置{position}处包含无效字符",
                position=position
            )

        if match.group('number') is not None:
            tokens.append(Token('number', float(match.group('number')), match.start('number')))
        elif match.group('reference') is not None:
            tokens.append(Token('reference', int(match.group('reference')), match.start('reference') - 1))
        elif match.group('operator') is not None:
            tokens.append(Token('operator', match.group('operator'), match.start('operator')))
        else:
            tokens.append(Token('paren', match.group('paren'), match.start('paren')))

        position = match.end()

    return tokens


def referenced_indices(expression: str) -> List[int]:
    """按出现顺序返回公式中的引用序号（可能重复）"""
    return [token.value for token in tokenize(expression) if token.kind == 'reference']


class _FormulaParser:
    """
    递归下降解析器

    expression := term (('+' | '-') term)*
    term       := factor (('*' | '/') factor)*
    factor     := '(' expression ')' | '-' atom | atom
    atom       := number | reference
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.position = 0
        self.depth = 0

    def parse(self) -> Tuple:
        node = self._expression()
        if self.position < len(self.tokens):
            token = self.tokens[self.position]
            raise self._malformed(f"位置{token.position}处出现多余的符号'{token.value}'")
        return node

    def _peek(self):
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _advance(self) -> Token:
        token = self.tokens[self.position]
        self.position += 1
        return token

    def _malformed(self, message: str) -> FormulaValidationError:
        return _validation_error(FormulaErrorKind.MALFORMED_EXPRESSION, message)

    def _is_operator(self, token, operators: str) -> bool:
        return token is not None and token.kind == 'operator' and token.value in operators

    def _expression(self) -> Tuple:
        node = self._term()
        while self._is_operator(self._peek(), '+-'):
            operator = self._advance().value
            node = ('binary', operator, node, self._term())
        return node

    def _term(self) -> Tuple:
        node = self._factor()
        while self._is_operator(self._peek(), '*/'):
            operator = self._advance().value
            node = ('binary', operator, node, self._factor())
        return node

    def _factor(self) -> Tuple:
        token = self._peek()
        if token is None:
            raise self._malformed("公式意外结束")

        if token.kind == 'paren' and token.value == '(':
            if self.depth >= MAX_NESTING_DEPTH:
                raise self._malformed(f"括号嵌套超过{MAX_NESTING_DEPTH}层")
            self._advance()
            self.depth += 1
            node = self._expression()
            self.depth -= 1
            closing = self._peek()
            if closing is None or closing.kind != 'paren' or closing.value != ')':
                raise self._malformed(f"位置{token.position}处的括号未正确闭合")
            self._advance()
            return node

        if self._is_operator(token, '-'):
            self._advance()
            operand = self._peek()
            if operand is None or operand.kind not in ('number', 'reference'):
                raise self._malformed(f"位置{token.position}处的负号只能用于数字或引用")
            return ('negate', self._atom())

        return self._atom()

    def _atom(self) -> Tuple:
        token = self._peek()
        if token is None:
            raise self._malformed("公式意外结束")
        if token.kind == 'number':
            self._advance()
            return ('number', token.value)
        if token.kind == 'reference':
            self._advance()
            return ('reference', token.value)
        raise self._malformed(f"位置{token.position}处出现意外的符号'{token.value}'")


def _evaluate_node(node: Tuple, bindings: Sequence[float]) -> float:
    kind = node[0]
    if kind == 'number':
        return node[1]
    if kind == 'reference':
        return float(bindings[node[1] - 1])
    if kind == 'negate':
        return -_evaluate_node(node[1], bindings)

    # 同级运算链是左深树，沿左侧迭代，递归深度只随括号层数增长
    chain = []
    while node[0] == 'binary':
        chain.append(node)
        node = node[2]

    value = _evaluate_node(node, bindings)
    for _, operator, _, right_node in reversed(chain):
        value = _apply_operator(operator, value, _evaluate_node(right_node, bindings))
    return value


def _apply_operator(operator: str, left: float, right: float) -> float:
    if operator == '+':
        return left + right
    if operator == '-':
        return left - right
    if operator == '*':
        return left * right
    if right == 0:
        raise FormulaEvaluationError(
            FormulaErrorKind.RUNTIME_DIVISION_BY_ZERO,
            "公式计算时出现除以零"
        )
    return left / right


class CompiledFormula:
    """已通过验证的公式语法树，可针对不同学生的数据重复求值"""

    def __init__(self, expression: str, child_count: int, tree: Tuple):
        self.expression = expression
        self.child_count = child_count
        self.tree = tree

    def evaluate(self, bindings: Sequence[float]) -> float:
        if len(bindings) != self.child_count:
            raise FormulaChildCountMismatchError(self.child_count, len(bindings))

        result = float(_evaluate_node(self.tree, bindings))
        if not np.isfinite(result):
            raise FormulaEvaluationError(
                FormulaErrorKind.NON_FINITE_RESULT,
                "公式计算结果超出数值范围"
            )
        return result


def _check_syntax(expression: str):
    """字符集、运算符相邻关系和括号平衡检查"""
    if not _CHARSET_PATTERN.match(expression):
        raise _validation_error(
            FormulaErrorKind.INVALID_CHARACTERS,
            "公式包含无效字符，只允许数字、运算符(+, -, *, /)、括号、小数点和引用(N1, N2等)"
        )

    clean_formula = re.sub(r'\s+', '', expression)

    if _CONSECUTIVE_OPERATORS_PATTERN.search(clean_formula):
        raise _validation_error(
            FormulaErrorKind.CONSECUTIVE_OPERATORS,
            "公式包含连续的运算符(++, +-, */等)"
        )

    if _TRAILING_OPERATOR_PATTERN.search(clean_formula):
        raise _validation_error(FormulaErrorKind.TRAILING_OPERATOR, "公式不能以运算符结尾")

    if _LEADING_OPERATOR_PATTERN.search(clean_formula):
        raise _validation_error(
            FormulaErrorKind.LEADING_OPERATOR,
            "公式不能以 +、* 或 / 开头"
        )

    depth = 0
    for char in clean_formula:
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth < 0:
                break
    if depth != 0:
        raise _validation_error(FormulaErrorKind.UNBALANCED_PARENTHESES, "公式中的括号不平衡")


def _check_references(tokens: List[Token], child_count: int):
    """所有引用必须在 1..k 范围内，且 1..k 中每个序号都必须出现"""
    references = [token.value for token in tokens if token.kind == 'reference']

    for index in references:
        if index < 1 or index > child_count:
            valid = ', '.join(f"N{i}" for i in range(1, child_count + 1)) or '无'
            raise _validation_error(
                FormulaErrorKind.REFERENCE_OUT_OF_RANGE,
                f"公式引用了N{index}，但只有{child_count}个子项，有效引用为: {valid}",
                index=index
            )

    used = set(references)
    missing = [i for i in range(1, child_count + 1) if i not in used]
    if missing:
        raise _validation_error(
            FormulaErrorKind.MISSING_REFERENCE,
            f"公式没有引用所有子项，缺少: {', '.join(f'N{i}' for i in missing)}",
            missing=missing
        )


def _check_explicit_division_by_zero(expression: str):
    """去除空白后出现 /0 且其后不是数字即拒绝（/0、/0.5 均拒绝，/00 不在此拒绝）"""
    clean_formula = re.sub(r'\s+', '', expression)
    match = _EXPLICIT_DIVISION_BY_ZERO_PATTERN.search(clean_formula)
    if match:
        raise _validation_error(
            FormulaErrorKind.EXPLICIT_DIVISION_BY_ZERO,
            f"公式包含除以零: {clean_formula[match.start():match.start() + 3]!r}"
        )


@lru_cache(maxsize=256)
def compile_formula(expression: str, child_count: int) -> CompiledFormula:
    """
    验证并解析公式

    检查顺序固定，第一个失败的检查决定返回的错误类型:
    字符集 -> 运算符相邻 -> 括号平衡 -> 引用完整性 -> 显式除零 -> 语法结构

    Args:
        expression: 公式文本
        child_count: 子项数量k（单元内评价项数或班级内单元数）

    Returns:
        已编译公式

    Raises:
        FormulaValidationError: 公式不合法
    """
    if expression is None or expression.strip() == '':
        raise _validation_error(FormulaErrorKind.EMPTY_FORMULA, "公式不能为空")

    _check_syntax(expression)
    tokens = tokenize(expression)
    _check_references(tokens, child_count)
    _check_explicit_division_by_zero(expression)
    tree = _FormulaParser(tokens).parse()

    logger.debug(f"公式编译完成: {expression!r} (k={child_count})")
    return CompiledFormula(expression, child_count, tree)


def validate_formula(expression: str, child_count: int) -> None:
    """验证公式，失败时抛出FormulaValidationError"""
    compile_formula(expression, child_count)


def evaluate_formula(expression: str, bindings: Sequence[float]) -> float:
    """
    计算公式，bindings[i-1] 绑定到 Ni

    求值前总会先做完整验证（k = len(bindings)），
    运行时除以零抛出 FormulaEvaluationError
    """
    values = [float(value) for value in bindings]
    return compile_formula(expression, len(values)).evaluate(values)
