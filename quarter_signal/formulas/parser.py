"""Recursive-descent parser that evaluates formulas while it parses them.

There is no separate syntax tree. Each grammar rule consumes tokens and
returns the value of what it consumed:

    expression     := comparison
    comparison     := additive ( compare_op additive )?
    additive       := multiplicative ( ('+' | '-') multiplicative )*
    multiplicative := unary ( ('*' | '/') unary )*
    unary          := '-' unary | primary '%'?
    primary        := NUMBER | STRING | '{' array '}' | IDENTIFIER ('[' index ']')?
                    | FUNCTION '(' args ')' | '(' expression ')'

LAMBDA bodies are the one exception: they are skipped with a dry-run parse
and kept as a token span, which a child parser re-evaluates per call.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from quarter_signal.data.metric_table import MetricTable
from quarter_signal.formulas.errors import FormulaParseError, FormulaRecursionError
from quarter_signal.formulas.operators import (
    COMPARISON_OPERATORS,
    evaluate_arithmetic,
    evaluate_comparison,
)
from quarter_signal.formulas.tokenizer import Token, TokenType
from quarter_signal.formulas.trace import TraceCollector
from quarter_signal.formulas.values import FormulaResult, LambdaValue, is_number, to_text
from quarter_signal.functions import FUNCTION_REGISTRY, LAMBDA_FUNCTIONS

logger = logging.getLogger(__name__)

_QUARTER_INDEX = re.compile(r"^([QqPp])(\d+)$")

Scope = Dict[str, FormulaResult]


@dataclass
class EvaluationContext:
    """State shared by a parser and the child parsers it spawns for lambdas."""

    formula: str
    tokens: List[Token]
    table: MetricTable
    trace: TraceCollector
    max_depth: int = 64
    verbose: bool = False
    referenced_quarters: List[str] = field(default_factory=list)


class FormulaParser:
    """Parse-and-evaluate over a token buffer with an explicit cursor.

    Args:
        context: Shared evaluation state (tokens, metric table, trace)
        position: Token index to start at
        scopes: LET/LAMBDA binding frames, innermost last
        depth: Nesting depth already used by the caller
        dry_run: Only check syntax; skip lookups, dispatch and trace steps
    """

    def __init__(
        self,
        context: EvaluationContext,
        position: int = 0,
        scopes: Optional[List[Scope]] = None,
        depth: int = 0,
        dry_run: bool = False,
    ):
        self.ctx = context
        self.pos = position
        self.scopes: List[Scope] = scopes if scopes is not None else []
        self.depth = depth
        self.dry_run = dry_run

    # --- Cursor ---

    def peek(self) -> Token:
        return self.ctx.tokens[self.pos]

    def advance(self) -> Token:
        token = self.ctx.tokens[self.pos]
        if token.kind is not TokenType.EOF:
            self.pos += 1
        return token

    def match(self, kind: TokenType, text: Optional[str] = None) -> bool:
        token = self.peek()
        if token.kind is kind and (text is None or token.text == text):
            self.advance()
            return True
        return False

    def expect(self, kind: TokenType, message: str) -> Token:
        token = self.peek()
        if token.kind is not kind:
            raise FormulaParseError(message, token.position)
        return self.advance()

    def _peek_operator(self, operators) -> Optional[str]:
        token = self.peek()
        if token.kind is TokenType.OPERATOR and token.text in operators:
            return token.text
        return None

    def _record(self, kind: str, description: str, input: Dict, output: Dict) -> None:
        if not self.dry_run:
            self.ctx.trace.add_step(kind, description, input, output)

    # --- Grammar ---

    def parse(self) -> FormulaResult:
        """Parse the whole token buffer as one expression."""
        value = self.parse_expression()
        token = self.peek()
        if token.kind is not TokenType.EOF:
            raise FormulaParseError(f"Unexpected token '{token.text}'", token.position)
        return value

    def parse_expression(self) -> FormulaResult:
        self.depth += 1
        try:
            if self.depth > self.ctx.max_depth:
                raise FormulaRecursionError(f"Formula nesting exceeds max_depth={self.ctx.max_depth}")
            return self.parse_comparison()
        finally:
            self.depth -= 1

    def parse_comparison(self) -> FormulaResult:
        left = self.parse_additive()

        op = self._peek_operator(COMPARISON_OPERATORS)
        if op is None:
            return left

        self.advance()
        right = self.parse_additive()
        result = evaluate_comparison(left, op, right)
        self._record(
            "comparison",
            f"{to_text(left)} {op} {to_text(right)} = {to_text(result)}",
            {"left": left, "op": op, "right": right},
            {"result": result},
        )
        return result

    def _binary(self, left: FormulaResult, op: str, right: FormulaResult) -> FormulaResult:
        result = evaluate_arithmetic(left, op, right)
        if is_number(left) and is_number(right):
            description = f"{to_text(left)} {op} {to_text(right)} = {to_text(result)}"
        else:
            description = f"Arithmetic operation failed: {op}"
        self._record("arithmetic", description, {"left": left, "op": op, "right": right}, {"result": result})
        return result

    def parse_additive(self) -> FormulaResult:
        left = self.parse_multiplicative()
        while True:
            op = self._peek_operator(("+", "-"))
            if op is None:
                break
            self.advance()
            left = self._binary(left, op, self.parse_multiplicative())
        return left

    def parse_multiplicative(self) -> FormulaResult:
        left = self.parse_unary()
        while True:
            op = self._peek_operator(("*", "/"))
            if op is None:
                break
            self.advance()
            left = self._binary(left, op, self.parse_unary())
        return left

    def parse_unary(self) -> FormulaResult:
        if self.match(TokenType.OPERATOR, "-"):
            operand = self.parse_unary()
            result = -operand if is_number(operand) else None
            self._record("unary", f"-{to_text(operand)} = {to_text(result)}", {"op": "-", "operand": operand}, {"result": result})
            return result

        value = self.parse_primary()

        if self.match(TokenType.OPERATOR, "%") and is_number(value):
            result = value / 100
            self._record("unary", f"{to_text(value)}% = {to_text(result)}", {"op": "%", "operand": value}, {"result": result})
            return result

        return value

    def parse_primary(self) -> FormulaResult:
        token = self.peek()

        if token.kind is TokenType.NUMBER:
            self.advance()
            value = float(token.text)
            # Literals too long for a double overflow to inf
            return value if math.isfinite(value) else None

        if token.kind is TokenType.STRING:
            self.advance()
            return token.text

        if token.kind is TokenType.LBRACE:
            return self._parse_array()

        if token.kind is TokenType.IDENTIFIER:
            self.advance()
            following = self.peek().kind
            if following is TokenType.LBRACKET:
                return self._parse_metric_reference(token)
            if following is TokenType.LPAREN:
                return self._parse_unknown_call(token.text)
            return self._resolve_identifier(token.text)

        if token.kind is TokenType.FUNCTION:
            self.advance()
            if token.text == "LET":
                return self._parse_let()
            if token.text == "LAMBDA":
                return self._parse_lambda()
            return self._parse_call(token.text)

        if token.kind is TokenType.LPAREN:
            self.advance()
            value = self.parse_expression()
            self.expect(TokenType.RPAREN, "Expected closing parenthesis")
            return value

        if token.kind is TokenType.EOF:
            raise FormulaParseError("Unexpected end of formula", token.position)
        raise FormulaParseError(f"Unexpected token '{token.text}'", token.position)

    def _parse_array(self) -> List[FormulaResult]:
        self.expect(TokenType.LBRACE, "Expected {")
        items: List[FormulaResult] = []
        if self.peek().kind is not TokenType.RBRACE:
            items.append(self.parse_expression())
            while self.match(TokenType.COMMA):
                items.append(self.parse_expression())
        self.expect(TokenType.RBRACE, "Expected }")
        return items

    # --- Metric references ---

    def _quarter_index(self, token: Token) -> int:
        if token.kind is TokenType.IDENTIFIER:
            m = _QUARTER_INDEX.match(token.text)
            if m:
                k = int(m.group(2))
                # P<k> is an alias of Q<k+1>
                return k + 1 if m.group(1) in "Pp" else k
        elif token.kind is TokenType.NUMBER:
            return int(float(token.text))
        raise FormulaParseError("Expected quarter index (e.g. Q1, P1 or 1) inside []", token.position)

    def _parse_metric_reference(self, name_token: Token) -> FormulaResult:
        self.expect(TokenType.LBRACKET, "Expected [")
        index_token = self.peek()
        quarter_index = self._quarter_index(index_token)
        self.advance()
        closing = self.expect(TokenType.RBRACKET, "Expected ]")
        reference = self.ctx.formula[name_token.position:closing.position + 1]
        return self._lookup(name_token.text, quarter_index, reference)

    def _resolve_identifier(self, name: str) -> FormulaResult:
        for frame in reversed(self.scopes):
            if name in frame:
                return frame[name]
        # Bare metric names refer to Q1
        return self._lookup(name, 1, name)

    def _lookup(self, metric_name: str, quarter_index: int, reference: str) -> FormulaResult:
        if self.dry_run:
            return None

        lookup = self.ctx.table.resolve(metric_name, quarter_index)
        if lookup.quarter is not None:
            self.ctx.referenced_quarters.append(lookup.quarter)

        self.ctx.trace.add_substitution(
            reference=reference,
            metric_name=metric_name,
            quarter=lookup.quarter,
            quarter_index=quarter_index,
            value=lookup.value,
            used_fallback=lookup.used_fallback,
        )
        description = f"{reference} = {to_text(lookup.value)}"
        if lookup.used_fallback:
            description += " (Financing Margin fallback)"
        self._record(
            "metric_lookup",
            description,
            {"metric": metric_name, "quarter_index": quarter_index, "quarter": lookup.quarter},
            {"value": lookup.value, "used_fallback": lookup.used_fallback},
        )

        if self.ctx.verbose:
            logger.info(
                f"[FormulaParser] {metric_name}[Q{quarter_index}] -> quarter={lookup.quarter} "
                f"value={to_text(lookup.value)}{' (fallback)' if lookup.used_fallback else ''}"
            )
        return lookup.value

    # --- Function calls ---

    def _parse_arguments(self, name: str) -> List[FormulaResult]:
        self.expect(TokenType.LPAREN, f"Expected ( after function {name}")
        args: List[FormulaResult] = []
        if self.peek().kind is not TokenType.RPAREN:
            args.append(self.parse_expression())
            while self.match(TokenType.COMMA):
                args.append(self.parse_expression())
        self.expect(TokenType.RPAREN, "Expected ) after function arguments")
        return args

    def _parse_call(self, name: str) -> FormulaResult:
        args = self._parse_arguments(name)
        if self.dry_run:
            return None

        fn = FUNCTION_REGISTRY[name]
        if name in LAMBDA_FUNCTIONS:
            result = fn(*args, invoke=self._invoke_lambda)
        else:
            result = fn(*args)

        self._record(
            "function_call",
            f"{name}({', '.join(to_text(a) for a in args)}) = {to_text(result)}",
            {"function": name, "arguments": args},
            {"result": result},
        )
        return result

    def _parse_unknown_call(self, name: str) -> FormulaResult:
        args = self._parse_arguments(name)
        if not self.dry_run:
            logger.warning(f"[FormulaParser] Unknown function: {name}")
            self._record(
                "function_call",
                f"{name}(...) = null (unknown function)",
                {"function": name, "arguments": args},
                {"result": None},
            )
        return None

    def _parse_let(self) -> FormulaResult:
        self.expect(TokenType.LPAREN, "Expected ( after LET")
        frame: Scope = {}
        self.scopes.append(frame)
        try:
            while self.peek().kind is TokenType.IDENTIFIER:
                saved = self.pos
                name = self.advance().text
                if not self.match(TokenType.COMMA):
                    # Not a (name, value) pair: the identifier starts the body
                    self.pos = saved
                    break
                frame[name] = self.parse_expression()
                if self.peek().kind is TokenType.RPAREN or not self.match(TokenType.COMMA):
                    break
            body = self.parse_expression()
            self.expect(TokenType.RPAREN, "Expected ) to close LET")
            return body
        finally:
            self.scopes.pop()

    def _parse_lambda(self) -> LambdaValue:
        self.expect(TokenType.LPAREN, "Expected ( after LAMBDA")
        param = self.peek()
        if param.kind is not TokenType.IDENTIFIER:
            raise FormulaParseError("LAMBDA requires a parameter name", param.position)
        self.advance()
        self.expect(TokenType.COMMA, "Expected comma in LAMBDA")

        body_start = self.pos
        skipper = FormulaParser(self.ctx, body_start, list(self.scopes), self.depth, dry_run=True)
        skipper.parse_expression()
        body_end = skipper.pos

        self.pos = body_end
        self.expect(TokenType.RPAREN, "Expected ) to close LAMBDA")
        return LambdaValue(param.text, body_start, body_end)

    def _invoke_lambda(self, fn: LambdaValue, argument: FormulaResult) -> FormulaResult:
        """Evaluate a lambda body for one argument without moving this parser's cursor."""
        child = FormulaParser(
            self.ctx,
            position=fn.body_start,
            scopes=self.scopes + [{fn.param_name: argument}],
            depth=self.depth + 1,
        )
        value = child.parse_expression()
        if child.pos != fn.body_end:
            raise FormulaParseError("LAMBDA body did not end where it was recorded", self.ctx.tokens[child.pos].position)
        return value
