"""chocowat.parser

Source frontend: text -> AST.

Concrete syntax is handled by `lark` (LALR with an indentation post-lexer,
grammar in `grammar.lark`). The tree is then converted into the immutable
nodes of `chocowat.ast_nodes` by a plain bottom-up `Transformer`; no node is
modified after construction.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence

from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken
from lark.indenter import DedentError, Indenter

from chocowat.ast_nodes import (
    INTRINSICS,
    Assign,
    BinaryExpr,
    BoolLiteral,
    Builtin1,
    Builtin2,
    Call,
    Decl,
    DeclStmt,
    ExprStmt,
    FunctionDef,
    If,
    Name,
    NoneLiteral,
    NumLiteral,
    Op,
    Parameter,
    Pass,
    Program,
    Return,
    Stmt,
    Type,
    UnaryExpr,
    While,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")


class ParseError(Exception):
    """Syntax error in the source text"""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.column = column


class SubsetIndenter(Indenter):
    NL_type = "_NEWLINE"
    OPEN_PAREN_types = ["LPAR"]
    CLOSE_PAREN_types = ["RPAR"]
    INDENT_type = "_INDENT"
    DEDENT_type = "_DEDENT"
    tab_len = 8


_PARSER = Lark(
    _GRAMMAR_PATH.read_text(encoding="utf-8"),
    parser="lalr",
    start="program",
    postlex=SubsetIndenter(),
    maybe_placeholders=True,
)


def _binary(op: Op):
    def build(self, left, right):
        return BinaryExpr(op, left, right)
    return build


@v_args(inline=True)
class AstBuilder(Transformer):
    """Builds AST nodes from the lark parse tree"""

    # ---- statements ----

    def program(self, *stmts):
        return Program(tuple(stmts))

    def var_def(self, name, ty, value):
        return DeclStmt(Decl(str(name), ty, value))

    def assign(self, name, value):
        return Assign(str(name), value)

    def return_stmt(self, value):
        return Return(value if value is not None else NoneLiteral())

    def pass_stmt(self):
        return Pass()

    def expr_stmt(self, expr):
        return ExprStmt(expr)

    def func_def(self, name, params, ret, body):
        # Leading declarations become the function's locals.
        stmts = list(body)
        decls = []
        while stmts and isinstance(stmts[0], DeclStmt):
            decls.append(stmts.pop(0).decl)
        return FunctionDef(
            name=str(name),
            parameters=params or (),
            ret=ret if ret is not None else Type.NONE,
            decls=tuple(decls),
            body=tuple(stmts),
        )

    def parameters(self, *params):
        return tuple(params)

    def parameter(self, name, ty):
        return Parameter(str(name), ty)

    def if_stmt(self, cond, then_body, *rest):
        *elifs, else_body = rest
        tail = else_body or ()
        for elif_cond, elif_body in reversed(elifs):
            tail = (If(elif_cond, elif_body, tail),)
        return If(cond, then_body, tail)

    def elif_clause(self, cond, body):
        return (cond, body)

    def else_clause(self, body):
        return body

    def while_stmt(self, cond, body):
        return While(cond, body)

    def block(self, *stmts):
        return tuple(stmts)

    # ---- types ----

    def int_type(self):
        return Type.INT

    def bool_type(self):
        return Type.BOOL

    def none_type(self):
        return Type.NONE

    # ---- expressions ----

    def number(self, token):
        return NumLiteral(int(token))

    def true(self):
        return BoolLiteral(True)

    def false(self):
        return BoolLiteral(False)

    def none(self):
        return NoneLiteral()

    def name(self, token):
        return Name(str(token))

    def call(self, name, args):
        name = str(name)
        args = tuple(args or ())
        # Intrinsics called with their own arity get dedicated nodes; anything
        # else stays a Call and the checker reports it.
        arity = INTRINSICS.get(name)
        if arity == 1 and len(args) == 1:
            return Builtin1(name, args[0])
        if arity == 2 and len(args) == 2:
            return Builtin2(name, args[0], args[1])
        return Call(name, args)

    def arguments(self, *exprs):
        return list(exprs)

    def neg(self, arg):
        return UnaryExpr(Op.NEG, arg)

    def not_op(self, arg):
        return UnaryExpr(Op.NOT, arg)

    plus = _binary(Op.PLUS)
    minus = _binary(Op.MINUS)
    times = _binary(Op.TIMES)
    div = _binary(Op.DIV)
    mod = _binary(Op.MOD)
    eq = _binary(Op.EQ)
    neq = _binary(Op.NEQ)
    leq = _binary(Op.LEQ)
    geq = _binary(Op.GEQ)
    lt = _binary(Op.LT)
    gt = _binary(Op.GT)
    is_op = _binary(Op.IS)


def parse_program(source: str) -> Program:
    """Parse source text into a Program."""
    if not source.endswith("\n"):
        source += "\n"
    try:
        tree = _PARSER.parse(source)
    except UnexpectedInput as e:
        raise ParseError(_describe(e), e.line, e.column) from e
    except DedentError as e:
        raise ParseError(f"Syntax error: {e}") from e
    program = AstBuilder().transform(tree)
    _check_declaration_placement(program)
    return program


def _describe(e: UnexpectedInput) -> str:
    if isinstance(e, UnexpectedToken):
        if e.token.type == "$END":
            detail = "unexpected end of input"
        else:
            detail = f"unexpected token {e.token.value!r}"
    elif isinstance(e, UnexpectedCharacters):
        detail = f"unexpected character {e.char!r}"
    elif isinstance(e, UnexpectedEOF):
        detail = "unexpected end of input"
    else:
        detail = "unexpected input"
    return f"Syntax error at line {e.line}, column {e.column}: {detail}"


def _check_declaration_placement(program: Program) -> None:
    # Declarations live at the top level or at the start of a function body.
    for stmt in program.statements:
        if isinstance(stmt, FunctionDef):
            _reject_declarations(stmt.body, f"function '{stmt.name}'")
        elif isinstance(stmt, (If, While)):
            _reject_declarations(_children(stmt), "a nested block")


def _reject_declarations(stmts: Iterable[Stmt], where: str) -> None:
    for stmt in stmts:
        if isinstance(stmt, DeclStmt):
            raise ParseError(
                f"Declaration of '{stmt.decl.name}' in {where} must come before any other statement"
            )
        if isinstance(stmt, (If, While)):
            _reject_declarations(_children(stmt), where)


def _children(stmt: Stmt) -> Sequence[Stmt]:
    if isinstance(stmt, If):
        return stmt.then_body + stmt.else_body
    return stmt.body
