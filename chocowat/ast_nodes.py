"""
Abstract Syntax Tree (AST) Node Definitions

Defines the fixed node vocabulary of the typed Python subset. Nodes are
frozen and hold tuples, so a tree is immutable once built. Types of
expressions are never written back into nodes; the semantic analyzer keeps
them in a side table.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Union


# ============== Types and Operators ==============

class Type(Enum):
    """The closed set of value types."""
    NONE = "<None>"
    BOOL = "bool"
    INT = "int"

    def __str__(self) -> str:
        return self.value


class Op(Enum):
    # arithmetic
    PLUS = "plus"
    MINUS = "minus"
    TIMES = "times"
    DIV = "div"
    MOD = "mod"
    # relational
    EQ = "eq"
    NEQ = "neq"
    LEQ = "leq"
    GEQ = "geq"
    LT = "lt"
    GT = "gt"
    IS = "is"
    # unary
    NEG = "neg"
    NOT = "not"

    @property
    def symbol(self) -> str:
        return _OP_SYMBOLS[self]

    def __str__(self) -> str:
        return self.symbol


_OP_SYMBOLS: Dict[Op, str] = {
    Op.PLUS: "+",
    Op.MINUS: "-",
    Op.TIMES: "*",
    Op.DIV: "//",
    Op.MOD: "%",
    Op.EQ: "==",
    Op.NEQ: "!=",
    Op.LEQ: "<=",
    Op.GEQ: ">=",
    Op.LT: "<",
    Op.GT: ">",
    Op.IS: "is",
    Op.NEG: "-",
    Op.NOT: "not",
}

ARITHMETIC_OPS = frozenset({Op.PLUS, Op.MINUS, Op.TIMES, Op.DIV, Op.MOD})
ORDERING_OPS = frozenset({Op.LEQ, Op.GEQ, Op.LT, Op.GT})
EQUALITY_OPS = frozenset({Op.EQ, Op.NEQ})
BINARY_OPS = ARITHMETIC_OPS | ORDERING_OPS | EQUALITY_OPS | {Op.IS}
UNARY_OPS = frozenset({Op.NEG, Op.NOT})

# Host-supplied procedures: name -> number of arguments
INTRINSICS: Dict[str, int] = {
    "print": 1,
    "abs": 1,
    "max": 2,
    "min": 2,
    "pow": 2,
}


# ============== Expression Nodes ==============

@dataclass(frozen=True)
class NoneLiteral:
    pass


@dataclass(frozen=True)
class BoolLiteral:
    value: bool


@dataclass(frozen=True)
class NumLiteral:
    value: int


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class UnaryExpr:
    op: Op
    arg: "Expr"


@dataclass(frozen=True)
class BinaryExpr:
    op: Op
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Builtin1:
    """Call of a 1-ary intrinsic (print, abs)"""
    name: str
    arg: "Expr"


@dataclass(frozen=True)
class Builtin2:
    """Call of a 2-ary intrinsic (max, min, pow)"""
    name: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Call:
    """Call of a user-defined function"""
    name: str
    args: Tuple["Expr", ...] = ()


Expr = Union[
    NoneLiteral,
    BoolLiteral,
    NumLiteral,
    Name,
    UnaryExpr,
    BinaryExpr,
    Builtin1,
    Builtin2,
    Call,
]


# ============== Declaration Nodes ==============

@dataclass(frozen=True)
class Decl:
    """Typed variable declaration with a mandatory initializer"""
    name: str
    type: Type
    value: Expr


@dataclass(frozen=True)
class Parameter:
    name: str
    type: Type


# ============== Statement Nodes ==============

@dataclass(frozen=True)
class Assign:
    name: str
    value: Expr


@dataclass(frozen=True)
class DeclStmt:
    decl: Decl


@dataclass(frozen=True)
class FunctionDef:
    """Function definition.

    `decls` are the declarations leading the body; they become the locals of
    the activation record next to the parameters.
    """
    name: str
    parameters: Tuple[Parameter, ...]
    ret: Type
    decls: Tuple[Decl, ...]
    body: Tuple["Stmt", ...]


@dataclass(frozen=True)
class Return:
    value: Expr


@dataclass(frozen=True)
class If:
    cond: Expr
    then_body: Tuple["Stmt", ...]
    else_body: Tuple["Stmt", ...] = ()


@dataclass(frozen=True)
class While:
    cond: Expr
    body: Tuple["Stmt", ...]


@dataclass(frozen=True)
class ExprStmt:
    expr: Expr


@dataclass(frozen=True)
class Pass:
    pass


Stmt = Union[Assign, DeclStmt, FunctionDef, Return, If, While, ExprStmt, Pass]


@dataclass(frozen=True)
class Program:
    """Ordered sequence of top-level statements"""
    statements: Tuple[Stmt, ...]
