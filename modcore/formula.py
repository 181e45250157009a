# modcore/formula.py
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .config import DEFAULT_CONFIG, ModifierConfig
from .dice import DEFAULT_DICE, Dice, Number, RollResult
from .errors import FormulaError, NonDeterministicFormulaError

logger = logging.getLogger(__name__)


# Token kinds, in match priority order. Dice must win over numbers ("2d6") and
# names ("d20").
_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    | (?P<dice>(?:\d+)?[dD]\d+(?![\w]))
    | (?P<number>\d+(?:\.\d+)?|\.\d+)
    | (?P<ref>@[A-Za-z_][\w.]*)
    | (?P<name>[A-Za-z_][\w.]*)
    | (?P<op>[-+*/%(),])
    | (?P<flavor>\[[^\]]*\])
    """,
    re.VERBOSE,
)

_MAX_NESTING = 32
_MAX_DIGITS = 1000


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def tokenize(formula: str) -> List[Token]:
    """
    Split a formula into tokens. Whitespace and [flavor] annotations are
    dropped here so the parser never sees them.
    """
    tokens: List[Token] = []
    pos = 0
    while pos < len(formula):
        m = _TOKEN_RE.match(formula, pos)
        if not m:
            raise FormulaError(f"Unexpected character {formula[pos]!r} at position {pos}", formula)
        kind = m.lastgroup or ""
        if kind not in ("ws", "flavor"):
            text = m.group(kind)
            if kind == "ref":
                text = text.rstrip(".")
            tokens.append(Token(kind=kind, text=text, pos=pos))
        pos = m.end()
    return tokens


# --- Expression tree ---------------------------------------------------------


@dataclass(frozen=True)
class Num:
    value: Number


@dataclass(frozen=True)
class Ref:
    path: str


@dataclass(frozen=True)
class DiceTerm:
    count: Any  # Num for "2d6", any node for "(@level)d6"
    sides: int


@dataclass(frozen=True)
class Neg:
    operand: Any


@dataclass(frozen=True)
class BinOp:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Call:
    name: str
    args: Tuple[Any, ...]


Node = Union[Num, Ref, DiceTerm, Neg, BinOp, Call]


def _round_half_up(x: float) -> int:
    # round(2.5) == 3, round(-2.5) == -2
    return math.floor(x + 0.5)


FUNCTIONS: Dict[str, Tuple[Callable[..., Number], int, Optional[int]]] = {
    # name: (fn, min_args, max_args)
    "floor": (math.floor, 1, 1),
    "ceil": (math.ceil, 1, 1),
    "round": (_round_half_up, 1, 1),
    "trunc": (math.trunc, 1, 1),
    "abs": (abs, 1, 1),
    "sign": (lambda x: (x > 0) - (x < 0), 1, 1),
    "min": (min, 1, None),
    "max": (max, 1, None),
}


class _Parser:
    """
    Recursive descent over the token list.

      expr    := term (('+' | '-') term)*
      term    := unary (('*' | '/' | '%') unary)*
      unary   := ('+' | '-') unary | postfix
      postfix := primary [dice-without-count]      # "(@level)d6"
      primary := NUMBER | DICE | REF | NAME '(' args ')' | '(' expr ')'
    """

    def __init__(self, tokens: List[Token], formula: str) -> None:
        self.tokens = tokens
        self.formula = formula
        self.i = 0
        self.depth = 0

    def peek(self) -> Optional[Token]:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def next(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise FormulaError("Unexpected end of formula", self.formula)
        self.i += 1
        return tok

    def expect_op(self, text: str) -> None:
        tok = self.next()
        if tok.kind != "op" or tok.text != text:
            raise FormulaError(f"Expected {text!r} at position {tok.pos}, got {tok.text!r}", self.formula)

    def at_op(self, *texts: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.kind == "op" and tok.text in texts

    def parse(self) -> Node:
        if not self.tokens:
            raise FormulaError("Empty formula", self.formula)
        node = self.expr()
        tok = self.peek()
        if tok is not None:
            raise FormulaError(f"Unexpected {tok.text!r} at position {tok.pos}", self.formula)
        return node

    def expr(self) -> Node:
        node = self.term()
        while self.at_op("+", "-"):
            op = self.next().text
            node = BinOp(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while self.at_op("*", "/", "%"):
            op = self.next().text
            node = BinOp(op, node, self.unary())
        return node

    def unary(self) -> Node:
        # Sign runs ("--1", "+-+2") fold into one optional Neg.
        negate = False
        while self.at_op("+", "-"):
            if self.next().text == "-":
                negate = not negate
        node = self.postfix()
        return Neg(node) if negate else node

    def postfix(self) -> Node:
        tok = self.peek()
        grouped = tok is not None and ((tok.kind == "op" and tok.text == "(") or tok.kind in ("ref", "name"))
        node = self.primary()
        nxt = self.peek()
        if grouped and nxt is not None and nxt.kind == "dice" and nxt.text[0] in "dD":
            self.next()
            return DiceTerm(count=node, sides=self._int(nxt.text[1:], nxt))
        return node

    def primary(self) -> Node:
        tok = self.next()

        if tok.kind == "number":
            value = float(tok.text) if "." in tok.text else self._int(tok.text, tok)
            return Num(value)

        if tok.kind == "dice":
            count_str, sides_str = re.split(r"[dD]", tok.text, maxsplit=1)
            count = self._int(count_str, tok) if count_str else 1
            return DiceTerm(count=Num(count), sides=self._int(sides_str, tok))

        if tok.kind == "ref":
            return Ref(tok.text[1:])

        if tok.kind == "name":
            name = tok.text.lower()
            if name.startswith("math."):
                name = name[len("math."):]
            if name not in FUNCTIONS:
                raise FormulaError(f"Unknown function {tok.text!r}", self.formula)
            self.expect_op("(")
            args: List[Node] = []
            if not self.at_op(")"):
                self._enter(tok)
                args.append(self.expr())
                while self.at_op(","):
                    self.next()
                    args.append(self.expr())
                self.depth -= 1
            self.expect_op(")")
            return Call(name, tuple(args))

        if tok.kind == "op" and tok.text == "(":
            self._enter(tok)
            node = self.expr()
            self.depth -= 1
            self.expect_op(")")
            return node

        raise FormulaError(f"Unexpected {tok.text!r} at position {tok.pos}", self.formula)

    def _enter(self, tok: Token) -> None:
        self.depth += 1
        if self.depth > _MAX_NESTING:
            raise FormulaError(f"Formula nested too deeply at position {tok.pos}", self.formula)

    def _int(self, text: str, tok: Token) -> int:
        if len(text) > _MAX_DIGITS:
            raise FormulaError(f"Number too large at position {tok.pos}", self.formula)
        return int(text)


def parse(formula: str) -> Node:
    return _Parser(tokenize(formula), formula).parse()


def render(node: Node) -> str:
    """Turn a tree back into compact formula text (used for dice term listings)."""
    if isinstance(node, Num):
        return str(node.value)
    if isinstance(node, Ref):
        return f"@{node.path}"
    if isinstance(node, DiceTerm):
        count = render(node.count) if isinstance(node.count, Num) else f"({render(node.count)})"
        return f"{count}d{node.sides}"
    if isinstance(node, Neg):
        return f"-{render(node.operand)}"
    if isinstance(node, BinOp):
        return f"({render(node.left)}{node.op}{render(node.right)})"
    if isinstance(node, Call):
        return f"{node.name}({', '.join(render(a) for a in node.args)})"
    raise TypeError(f"Unknown node: {node!r}")


# --- Data references ---------------------------------------------------------

_MISSING = object()


def resolve_path(data: Any, path: str) -> Any:
    """
    Walk a dotted path through nested mappings, sequences and attributes.
    Returns _MISSING when any segment is absent.
    """
    current = data
    for part in path.split("."):
        if current is None:
            return _MISSING
        if isinstance(current, Mapping):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            idx = int(part)
            if idx >= len(current):
                return _MISSING
            current = current[idx]
        elif hasattr(current, part):
            current = getattr(current, part)
        else:
            return _MISSING
    return current


def _normalize(value: Number) -> Number:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


# --- Evaluation --------------------------------------------------------------

# How dice terms are resolved during one evaluation pass.
_ROLL, _MAXIMIZE, _MINIMIZE, _ZERO, _STRICT = "roll", "maximize", "minimize", "zero", "strict"


@dataclass
class _Context:
    data: Any
    mode: str
    dice: Dice
    config: ModifierConfig
    missing: Optional[Number]
    formula: str
    rolls: List[int] = field(default_factory=list)
    depth: int = 0


class Formula:
    """
    A parsed modifier value: a constant ("2"), arithmetic over actor data
    ("floor(@details.level / 4)") or a dice roll ("1d4+@abilities.wis.mod").

    Parsing happens once, up front; evaluation can be repeated against the
    same roll data in different modes:
      - strict (default): dice are an error, the result must be deterministic
      - maximize / minimize: dice take their highest / lowest face
      - rolled: dice are rolled with the given (or default) Dice

    Nothing is ever handed to eval(); only the grammar in _Parser is accepted.
    """

    def __init__(
        self,
        formula: Union[str, Number],
        data: Any = None,
        *,
        missing: Optional[Number] = None,
        config: ModifierConfig = DEFAULT_CONFIG,
    ) -> None:
        self.formula = str(formula).strip()
        self.data = data if data is not None else {}
        self.missing = missing
        self.config = config

        if len(self.formula) > config.max_formula_length:
            raise FormulaError(f"Formula longer than {config.max_formula_length} characters", self.formula[:40])
        self.tree: Node = parse(self.formula)

    def __repr__(self) -> str:
        return f"Formula({self.formula!r})"

    # --- Inspection ---

    @property
    def dice_terms(self) -> List[str]:
        """Dice terms written directly in this formula, e.g. ["1d4", "(@level)d6"]."""
        found: List[str] = []

        def walk(node: Node) -> None:
            if isinstance(node, DiceTerm):
                found.append(render(node))
                walk(node.count)
            elif isinstance(node, Neg):
                walk(node.operand)
            elif isinstance(node, BinOp):
                walk(node.left)
                walk(node.right)
            elif isinstance(node, Call):
                for a in node.args:
                    walk(a)

        walk(self.tree)
        return found

    @property
    def is_deterministic(self) -> bool:
        """
        True when no dice are involved, including dice pulled in through data
        references that hold formula strings.
        """
        try:
            self.evaluate(strict=True)
        except NonDeterministicFormulaError:
            return False
        except FormulaError:
            # Broken in some other way; it still rolls no dice.
            return not self.dice_terms
        return True

    # --- Evaluation ---

    def evaluate(
        self,
        *,
        strict: bool = True,
        maximize: bool = False,
        minimize: bool = False,
        dice: Optional[Dice] = None,
    ) -> RollResult:
        if maximize and minimize:
            raise ValueError("maximize and minimize are mutually exclusive")

        if maximize:
            mode = _MAXIMIZE
        elif minimize:
            mode = _MINIMIZE
        elif dice is not None or not strict:
            mode = _ROLL
        else:
            mode = _STRICT

        ctx = self._context(mode, dice)
        total = _normalize(self._run(ctx))
        rolls = list(ctx.rolls)

        modifier: Number = total
        if rolls:
            modifier = _normalize(self._run(self._context(_ZERO, dice)))

        return RollResult(total=total, rolls=rolls, modifier=modifier, notation=self.formula)

    def roll(self, dice: Optional[Dice] = None) -> RollResult:
        return self.evaluate(strict=False, dice=dice)

    @property
    def total(self) -> Number:
        """Deterministic total; raises FormulaError if dice are involved."""
        return self.evaluate(strict=True).total

    @property
    def min_total(self) -> Number:
        return self.evaluate(minimize=True).total

    @property
    def max_total(self) -> Number:
        return self.evaluate(maximize=True).total

    def _run(self, ctx: _Context) -> Number:
        """Evaluate the tree; arithmetic blowups surface as FormulaError."""
        try:
            value = self._eval(self.tree, ctx)
        except FormulaError:
            raise
        except (ArithmeticError, ValueError, RecursionError) as e:
            raise FormulaError(f"Cannot evaluate: {e}", ctx.formula) from e
        if isinstance(value, float) and not math.isfinite(value):
            raise FormulaError(f"Result is not a finite number: {value}", ctx.formula)
        return value

    def _context(self, mode: str, dice: Optional[Dice]) -> _Context:
        return _Context(
            data=self.data,
            mode=mode,
            dice=dice if dice is not None else DEFAULT_DICE,
            config=self.config,
            missing=self.missing,
            formula=self.formula,
        )

    def _eval(self, node: Node, ctx: _Context) -> Number:
        if isinstance(node, Num):
            return node.value

        if isinstance(node, Ref):
            return self._eval_ref(node, ctx)

        if isinstance(node, Neg):
            return -self._eval(node.operand, ctx)

        if isinstance(node, BinOp):
            left = self._eval(node.left, ctx)
            right = self._eval(node.right, ctx)
            if node.op == "+":
                return left + right
            if node.op == "-":
                return left - right
            if node.op == "*":
                return left * right
            if right == 0:
                raise FormulaError("Division by zero", ctx.formula)
            if node.op == "/":
                return left / right
            return math.fmod(left, right)

        if isinstance(node, Call):
            fn, min_args, max_args = FUNCTIONS[node.name]
            if len(node.args) < min_args or (max_args is not None and len(node.args) > max_args):
                raise FormulaError(f"Wrong number of arguments for {node.name}()", ctx.formula)
            args = [self._eval(a, ctx) for a in node.args]
            return fn(*args)

        if isinstance(node, DiceTerm):
            return self._eval_dice(node, ctx)

        raise FormulaError(f"Unsupported expression node {type(node).__name__}", ctx.formula)

    def _eval_dice(self, node: DiceTerm, ctx: _Context) -> Number:
        count_value = self._eval(node.count, ctx)
        if count_value != int(count_value):
            raise FormulaError(f"Dice count must be a whole number, got {count_value}", ctx.formula)
        count = int(count_value)
        sides = node.sides

        if count < 0:
            raise FormulaError("Dice count must be >= 0", ctx.formula)
        if count > ctx.config.max_dice or sides > ctx.config.max_sides:
            raise FormulaError(f"Too many dice: {count}d{sides}", ctx.formula)
        if count > 0 and sides <= 0:
            raise FormulaError("Dice must have at least one side", ctx.formula)

        if ctx.mode == _STRICT:
            raise NonDeterministicFormulaError(
                f"Formula rolls dice ({count}d{sides}) but must be deterministic", ctx.formula
            )
        if ctx.mode == _ZERO:
            return 0
        if ctx.mode == _MAXIMIZE:
            return count * sides
        if ctx.mode == _MINIMIZE:
            return count

        rolls = ctx.dice.roll_many(count, sides)
        ctx.rolls.extend(rolls)
        return sum(rolls)

    def _eval_ref(self, node: Ref, ctx: _Context) -> Number:
        value = resolve_path(ctx.data, node.path)

        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str) and value.strip():
            # Stored values like "@abilities.dex.mod + 1" are formulas themselves.
            if ctx.depth >= ctx.config.max_depth:
                raise FormulaError(f"Reference @{node.path} nests too deeply", ctx.formula)
            text = value.strip()
            if len(text) > ctx.config.max_formula_length:
                raise FormulaError(
                    f"Reference @{node.path} holds a formula longer than {ctx.config.max_formula_length} characters",
                    ctx.formula,
                )
            nested = parse(text)
            ctx.depth += 1
            try:
                return self._eval(nested, ctx)
            finally:
                ctx.depth -= 1

        if ctx.missing is not None:
            logger.debug("Reference @%s missing from roll data, using %s", node.path, ctx.missing)
            return ctx.missing
        raise FormulaError(f"Unresolved reference @{node.path}", ctx.formula)


# --- Minimal functional API ---


def evaluate(formula: Union[str, Number], data: Any = None, **kwargs: Any) -> RollResult:
    """Parse and evaluate in one go; keyword args go to Formula.evaluate."""
    return Formula(formula, data).evaluate(**kwargs)


def safe_total(formula: Union[str, Number], data: Any = None, default: Number = 0, **kwargs: Any) -> Number:
    """
    Like evaluate(...).total, but any FormulaError becomes `default`.
    Used where a bad user formula must not break sheet preparation.
    """
    try:
        return evaluate(formula, data, **kwargs).total
    except FormulaError as e:
        logger.debug("Formula %r failed, using %s: %s", formula, default, e)
        return default
