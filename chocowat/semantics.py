"""chocowat.semantics

Type checker for the typed Python subset.

The check is whole-program, two-pass and fail-fast:

- pass 1 records every function signature and every top-level declaration,
  so functions may reference each other (and globals) before their definition
- pass 2 checks the top-level declarations in source order, then every other
  top-level statement in source order, matching the order `_start` runs them

The first violation raises one of the `chocowat.errors` exceptions and the
compile stops there. Expression types are recorded in a side table keyed by
node identity; the AST itself is never annotated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Set

from chocowat.ast_nodes import (
    ARITHMETIC_OPS,
    BINARY_OPS,
    EQUALITY_OPS,
    INTRINSICS,
    ORDERING_OPS,
    UNARY_OPS,
    Assign,
    BinaryExpr,
    BoolLiteral,
    Builtin1,
    Builtin2,
    Call,
    Decl,
    DeclStmt,
    Expr,
    ExprStmt,
    FunctionDef,
    If,
    Name,
    NoneLiteral,
    NumLiteral,
    Op,
    Pass,
    Program,
    Return,
    Stmt,
    Type,
    UnaryExpr,
    While,
)
from chocowat.environment import Environment, Signature
from chocowat.errors import (
    ArityMismatch,
    DuplicateDeclaration,
    SemanticError,
    TypeMismatch,
    UnboundName,
    UnsupportedOperator,
)

__all__ = [
    "SemanticAnalyzer",
    "SemanticContext",
    "SemanticError",
    "UnboundName",
    "DuplicateDeclaration",
    "TypeMismatch",
    "ArityMismatch",
    "UnsupportedOperator",
]


@dataclass
class SemanticContext:
    expr_types: Dict[int, Type]
    signatures: Dict[str, Signature]

    def type_of(self, expr: Expr) -> Type:
        return self.expr_types[id(expr)]


class SemanticAnalyzer:
    """Semantic analyzer for the typed Python subset"""

    def __init__(self):
        self._expr_types: Dict[int, Type] = {}
        # ids of Decl/FunctionDef nodes bound during pass 1
        self._predeclared: Set[int] = set()
        self._top_level_defs: Set[int] = set()
        # globals whose initializer has already been checked
        self._reached: Set[str] = set()

    def analyze(self, program: Program, env: Environment) -> SemanticContext:
        """Check `program`, binding its globals and signatures into `env`."""
        self._expr_types = {}
        self._predeclared = set()
        self._top_level_defs = set()
        self._reached = set()

        # Pass 1: signatures and global declarations
        for stmt in program.statements:
            if isinstance(stmt, FunctionDef):
                params = tuple(p.type for p in stmt.parameters)
                env.define_function(Signature(stmt.name, params, stmt.ret))
                self._top_level_defs.add(id(stmt))
            elif isinstance(stmt, DeclStmt):
                env.declare(stmt.decl.name, stmt.decl.type)
                self._predeclared.add(id(stmt.decl))

        # Pass 2: top-level declarations first (their initializers run ahead of
        # every other top-level statement), then everything else in order
        hoisted = [s for s in program.statements if isinstance(s, DeclStmt)]
        for stmt in hoisted:
            self._analyze_stmt(stmt, env)
        for stmt in program.statements:
            if not isinstance(stmt, DeclStmt):
                self._analyze_stmt(stmt, env)

        return SemanticContext(expr_types=dict(self._expr_types), signatures=env.signatures())

    # -----------------
    # Statements
    # -----------------

    def _analyze_block(self, stmts: Sequence[Stmt], env: Environment) -> Optional[Type]:
        """Check a statement list; return the type its `return`s agree on, if any."""
        found: Optional[Type] = None
        for stmt in stmts:
            ret = self._analyze_stmt(stmt, env)
            if ret is None:
                continue
            if found is None:
                found = ret
            elif ret != found:
                raise TypeMismatch(f"Cannot return different types within one block: {found} and {ret}")
        return found

    def _analyze_stmt(self, stmt: Stmt, env: Environment) -> Optional[Type]:
        if isinstance(stmt, DeclStmt):
            self._analyze_decl(stmt.decl, env)
            return None

        if isinstance(stmt, Assign):
            binding = self._resolve(stmt.name, env)
            value_type = self._analyze_expr(stmt.value, env)
            if value_type != binding.type:
                raise TypeMismatch(
                    f"Expected type {binding.type}; got type {value_type} in assignment to '{stmt.name}'"
                )
            return None

        if isinstance(stmt, FunctionDef):
            if id(stmt) not in self._top_level_defs:
                raise SemanticError(f"Function '{stmt.name}' must be defined at the top level")
            self._analyze_function(stmt, env)
            return None

        if isinstance(stmt, Return):
            if env.is_global_scope:
                raise TypeMismatch("'return' outside of a function")
            return self._analyze_expr(stmt.value, env)

        if isinstance(stmt, If):
            self._analyze_condition(stmt.cond, env, "if")
            then_ret = self._analyze_block(stmt.then_body, env)
            else_ret = self._analyze_block(stmt.else_body, env)
            if then_ret is not None and else_ret is not None and then_ret != else_ret:
                raise TypeMismatch(f"Branches of 'if' return different types: {then_ret} and {else_ret}")
            return then_ret if then_ret is not None else else_ret

        if isinstance(stmt, While):
            self._analyze_condition(stmt.cond, env, "while")
            return self._analyze_block(stmt.body, env)

        if isinstance(stmt, ExprStmt):
            self._analyze_expr(stmt.expr, env)
            return None

        if isinstance(stmt, Pass):
            return None

        raise SemanticError(f"Unknown statement: {type(stmt).__name__}")

    def _analyze_decl(self, decl: Decl, env: Environment) -> None:
        # The initializer sees parameters and earlier declarations only.
        value_type = self._analyze_expr(decl.value, env)
        if value_type != decl.type:
            raise TypeMismatch(
                f"Expected type {decl.type}; got type {value_type} in declaration of '{decl.name}'"
            )
        if id(decl) not in self._predeclared:
            env.declare(decl.name, decl.type)
        if env.is_global_scope:
            self._reached.add(decl.name)

    def _analyze_function(self, fn: FunctionDef, env: Environment) -> None:
        local_env = env.nested(fn.name)
        for p in fn.parameters:
            local_env.declare(p.name, p.type)
        for decl in fn.decls:
            self._analyze_decl(decl, local_env)

        found = self._analyze_block(fn.body, local_env)
        if found is not None and found != fn.ret:
            raise TypeMismatch(f"Expected type {fn.ret}; got type {found} in return from '{fn.name}'")
        # Shallow check: the last statement has to be a return.
        if fn.ret != Type.NONE and (not fn.body or not isinstance(fn.body[-1], Return)):
            raise TypeMismatch(
                f"All paths in function '{fn.name}' must return a value of type {fn.ret}"
            )

    def _analyze_condition(self, cond: Expr, env: Environment, keyword: str) -> None:
        t = self._analyze_expr(cond, env)
        if t != Type.BOOL:
            raise TypeMismatch(f"Condition of '{keyword}' must be of type bool; got type {t}")

    def _resolve(self, name: str, env: Environment):
        binding = env.lookup(name)
        # Global initializers run in declaration order, so one cannot see a
        # declaration below it.
        if env.is_global_scope and name not in self._reached:
            raise UnboundName(f"Name '{name}' is used before its declaration")
        return binding

    # -----------------
    # Expressions
    # -----------------

    def _analyze_expr(self, expr: Expr, env: Environment) -> Type:
        t = self._infer(expr, env)
        self._expr_types[id(expr)] = t
        return t

    def _infer(self, expr: Expr, env: Environment) -> Type:
        if isinstance(expr, NoneLiteral):
            return Type.NONE
        if isinstance(expr, BoolLiteral):
            return Type.BOOL
        if isinstance(expr, NumLiteral):
            return Type.INT

        if isinstance(expr, Name):
            return self._resolve(expr.name, env).type

        if isinstance(expr, UnaryExpr):
            if expr.op not in UNARY_OPS:
                raise UnsupportedOperator(f"'{expr.op}' is not a unary operator")
            t = self._analyze_expr(expr.arg, env)
            if expr.op == Op.NEG:
                if t != Type.INT:
                    raise TypeMismatch(f"Cannot apply unary operator '-' on type {t}")
                return Type.INT
            if t != Type.BOOL:
                raise TypeMismatch(f"Cannot apply unary operator 'not' on type {t}")
            return Type.BOOL

        if isinstance(expr, BinaryExpr):
            if expr.op not in BINARY_OPS:
                raise UnsupportedOperator(f"'{expr.op}' is not a binary operator")
            lt = self._analyze_expr(expr.left, env)
            rt = self._analyze_expr(expr.right, env)
            return self._check_binary(expr.op, lt, rt)

        if isinstance(expr, Builtin1):
            self._check_intrinsic_arity(expr.name, 1)
            self._check_int_argument(expr.name, 0, self._analyze_expr(expr.arg, env))
            return Type.INT

        if isinstance(expr, Builtin2):
            self._check_intrinsic_arity(expr.name, 2)
            self._check_int_argument(expr.name, 0, self._analyze_expr(expr.left, env))
            self._check_int_argument(expr.name, 1, self._analyze_expr(expr.right, env))
            return Type.INT

        if isinstance(expr, Call):
            return self._check_call(expr, env)

        raise SemanticError(f"Unknown expression: {type(expr).__name__}")

    def _check_binary(self, op: Op, lt: Type, rt: Type) -> Type:
        if op in ARITHMETIC_OPS:
            if lt != Type.INT or rt != Type.INT:
                raise TypeMismatch(f"Cannot apply operator '{op}' on types {lt} and {rt}")
            return Type.INT
        if op in ORDERING_OPS:
            if lt != Type.INT or rt != Type.INT:
                raise TypeMismatch(f"Cannot apply operator '{op}' on types {lt} and {rt}")
            return Type.BOOL
        if op in EQUALITY_OPS:
            if lt != rt:
                raise TypeMismatch(f"Cannot apply operator '{op}' on different types {lt} and {rt}")
            return Type.BOOL
        # `is` is only defined between None values.
        if lt != Type.NONE or rt != Type.NONE:
            raise TypeMismatch(f"Cannot apply operator 'is' on types {lt} and {rt}")
        return Type.BOOL

    def _check_intrinsic_arity(self, name: str, given: int) -> None:
        expected = INTRINSICS.get(name)
        if expected is None:
            raise UnboundName(f"Not a built-in function: {name}")
        if expected != given:
            raise ArityMismatch(f"'{name}' expects {expected} arguments; got {given}")

    def _check_int_argument(self, name: str, index: int, t: Type) -> None:
        if t != Type.INT:
            raise TypeMismatch(f"Expected type int; got type {t} in parameter {index} of '{name}'")

    def _check_call(self, call: Call, env: Environment) -> Type:
        if call.name in INTRINSICS:
            self._check_intrinsic_arity(call.name, len(call.args))
            for i, arg in enumerate(call.args):
                self._check_int_argument(call.name, i, self._analyze_expr(arg, env))
            return Type.INT

        sig = env.signature(call.name)
        if len(call.args) != len(sig.params):
            raise ArityMismatch(
                f"'{call.name}' expects {len(sig.params)} arguments; got {len(call.args)}"
            )
        for i, (arg, expected) in enumerate(zip(call.args, sig.params)):
            t = self._analyze_expr(arg, env)
            if t != expected:
                raise TypeMismatch(
                    f"Expected type {expected}; got type {t} in parameter {i} of '{call.name}'"
                )
        return sig.ret
