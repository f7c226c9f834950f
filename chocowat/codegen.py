"""chocowat.codegen

WebAssembly text (WAT) generator.

Walks a checked AST once and emits a module in linear (stack) form, one
instruction per line, indented by block nesting.

Module layout:
- one imported linear memory (`js.memory`) holding the globals
- five imported host procedures (`imports.print`, `abs`, `max`, `min`, `pow`)
- one function per `def`, every parameter and result an i64 tagged word
- the exported entry point `_start`

Assumptions (current stage):
- the program passed `SemanticAnalyzer.analyze` with the same environment;
  unchecked input is not supported
- `//` and `%` truncate toward zero, like the VM's `div_s`/`rem_s`
"""

from __future__ import annotations

from typing import List, Optional, Sequence

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
from chocowat.environment import Binding, Environment
from chocowat import values

MEMORY_MODULE = "js"
MEMORY_NAME = "memory"
IMPORT_MODULE = "imports"
ENTRY_POINT = "_start"
SCRATCH = "$scratch"

_ARITH_INSTR = {
    Op.PLUS: "i64.add",
    Op.MINUS: "i64.sub",
    Op.TIMES: "i64.mul",
    Op.DIV: "i64.div_s",
    Op.MOD: "i64.rem_s",
}

# Comparisons work on the encoded words directly.
_COMPARE_INSTR = {
    Op.EQ: "i64.eq",
    Op.NEQ: "i64.ne",
    Op.IS: "i64.eq",
    Op.LEQ: "i64.le_s",
    Op.GEQ: "i64.ge_s",
    Op.LT: "i64.lt_s",
    Op.GT: "i64.gt_s",
}

_DEFAULT_WORD = {
    Type.INT: values.encode_int(0),
    Type.BOOL: values.FALSE,
    Type.NONE: values.NONE,
}


class CodeGenError(Exception):
    """Raised for input the generator cannot lower"""
    pass


class CodeGenerator:
    """Generates WAT from a checked AST"""

    def __init__(self, memory_pages: Optional[int] = None):
        self.memory_pages = memory_pages
        self.assembly_lines: List[str] = []
        self._indent = 0

        # per-function
        self._locals: List[str] = []
        self._in_function = False

    def generate(self, program: Program, env: Environment) -> str:
        """Generate the module text for `program`."""
        self.assembly_lines = []
        self._indent = 0

        pages = self.memory_pages if self.memory_pages is not None else env.memory_pages()

        self._emit("(module")
        self._indent += 1
        self._emit(f'(import "{MEMORY_MODULE}" "{MEMORY_NAME}" (memory {pages}))')
        for name, arity in INTRINSICS.items():
            params = " ".join(["(param i64)"] * arity)
            self._emit(f'(func ${name} (import "{IMPORT_MODULE}" "{name}") {params} (result i64))')

        for stmt in program.statements:
            if isinstance(stmt, FunctionDef):
                self._emit_function(stmt, env)

        self._emit_entry(program, env)
        self._indent -= 1
        self._emit(")")
        return "\n".join(self.assembly_lines) + "\n"

    def _emit(self, line: str) -> None:
        self.assembly_lines.append("  " * self._indent + line)

    # -----------------
    # Function framing
    # -----------------

    def _emit_function(self, fn: FunctionDef, env: Environment) -> None:
        local_env = env.nested(fn.name)
        for p in fn.parameters:
            local_env.declare(p.name, p.type)

        # Locals have to be listed before the first instruction, so the body
        # is generated into a separate buffer first.
        outer_lines, outer_indent = self.assembly_lines, self._indent
        self.assembly_lines, self._indent = [], outer_indent + 1
        self._locals = []
        self._in_function = True

        for decl in fn.decls:
            self._emit_decl(decl, local_env)
        self._emit_block(fn.body, local_env)
        if fn.ret == Type.NONE:
            # falling off the end returns None
            self._emit(f"i64.const {values.NONE}")

        body_lines, local_names = self.assembly_lines, self._locals
        self.assembly_lines, self._indent = outer_lines, outer_indent
        self._locals = []
        self._in_function = False

        header = [f"(func ${fn.name}"]
        header += [f"(param ${p.name} i64)" for p in fn.parameters]
        header.append("(result i64)")
        self._emit(" ".join(header))
        self._indent += 1
        for name in local_names:
            self._emit(f"(local ${name} i64)")
        self._indent -= 1
        self.assembly_lines.extend(body_lines)
        self._emit(")")

    def _emit_entry(self, program: Program, env: Environment) -> None:
        # Declarations are initialized ahead of the other top-level statements.
        decls = [s for s in program.statements if isinstance(s, DeclStmt)]
        statements = [s for s in program.statements if not isinstance(s, (FunctionDef, DeclStmt))]
        last = program.statements[-1] if program.statements else None
        returns_value = isinstance(last, ExprStmt)

        result = " (result i64)" if returns_value else ""
        self._emit(f'(func (export "{ENTRY_POINT}"){result}')
        self._indent += 1
        self._emit(f"(local {SCRATCH} i64)")

        # Every global starts out holding a well-typed word.
        for binding in env.global_bindings():
            self._emit(f"i32.const {binding.address}")
            self._emit(f"i64.const {_DEFAULT_WORD[binding.type]}")
            self._emit("i64.store")

        self._emit_block(decls, env)
        self._emit_block(statements, env)

        if returns_value:
            self._emit(f"local.get {SCRATCH}")
            self._emit("i64.const 1")
            self._emit("i64.shr_s")
        self._indent -= 1
        self._emit(")")

    # -----------------
    # Statements
    # -----------------

    def _emit_block(self, stmts: Sequence[Stmt], env: Environment) -> None:
        for stmt in stmts:
            self._emit_stmt(stmt, env)

    def _emit_stmt(self, stmt: Stmt, env: Environment) -> None:
        if isinstance(stmt, DeclStmt):
            self._emit_decl(stmt.decl, env)
            return

        if isinstance(stmt, Assign):
            self._emit_store(env.lookup(stmt.name), stmt.value, env)
            return

        if isinstance(stmt, Return):
            self._emit_expr(stmt.value, env)
            self._emit("return")
            return

        if isinstance(stmt, If):
            self._emit_expr(stmt.cond, env)
            self._emit(f"i64.const {values.TRUE}")
            self._emit("i64.eq")
            self._emit("if")
            self._indent += 1
            self._emit_block(stmt.then_body, env)
            self._indent -= 1
            if stmt.else_body:
                self._emit("else")
                self._indent += 1
                self._emit_block(stmt.else_body, env)
                self._indent -= 1
            self._emit("end")
            return

        if isinstance(stmt, While):
            # block is the exit scope; `br 0` inside the loop repeats it.
            self._emit("block")
            self._indent += 1
            self._emit("loop")
            self._indent += 1
            self._emit_expr(stmt.cond, env)
            self._emit(f"i64.const {values.FALSE}")
            self._emit("i64.eq")
            self._emit("br_if 1")
            self._emit_block(stmt.body, env)
            self._emit("br 0")
            self._indent -= 1
            self._emit("end")
            self._indent -= 1
            self._emit("end")
            return

        if isinstance(stmt, ExprStmt):
            self._emit_expr(stmt.expr, env)
            if self._in_function:
                self._emit("drop")
            else:
                self._emit(f"local.set {SCRATCH}")
            return

        if isinstance(stmt, Pass):
            self._emit("nop")
            return

        if isinstance(stmt, FunctionDef):
            raise CodeGenError(f"Nested function definition: {stmt.name}")

        raise CodeGenError(f"Unknown statement: {type(stmt).__name__}")

    def _emit_decl(self, decl: Decl, env: Environment) -> None:
        # Globals were bound during checking; locals are bound here, after
        # the initializer, so it cannot see the name it initializes.
        if env.is_global_scope:
            binding = env.lookup(decl.name)
            self._emit_store(binding, decl.value, env)
            return
        self._emit_expr(decl.value, env)
        binding = env.declare(decl.name, decl.type)
        self._locals.append(binding.name)
        self._emit(f"local.set ${binding.name}")

    def _emit_store(self, binding: Binding, value: Expr, env: Environment) -> None:
        if binding.is_local:
            self._emit_expr(value, env)
            self._emit(f"local.set ${binding.name}")
        else:
            self._emit(f"i32.const {binding.address}")
            self._emit_expr(value, env)
            self._emit("i64.store")

    # -----------------
    # Expressions
    # -----------------

    def _emit_expr(self, expr: Expr, env: Environment) -> None:
        if isinstance(expr, NoneLiteral):
            self._emit(f"i64.const {values.NONE}")
            return

        if isinstance(expr, BoolLiteral):
            self._emit(f"i64.const {values.encode_bool(expr.value)}")
            return

        if isinstance(expr, NumLiteral):
            self._emit_int_const(expr.value)
            return

        if isinstance(expr, UnaryExpr) and expr.op == Op.NEG and isinstance(expr.arg, NumLiteral):
            # -2**62 is representable even though 2**62 is not
            self._emit_int_const(-expr.arg.value)
            return

        if isinstance(expr, Name):
            binding = env.lookup(expr.name)
            if binding.is_local:
                self._emit(f"local.get ${binding.name}")
            else:
                self._emit(f"i32.const {binding.address}")
                self._emit("i64.load")
            return

        if isinstance(expr, UnaryExpr):
            if expr.op == Op.NEG:
                # 2 - (2n+1) == 2(-n)+1
                self._emit("i64.const 2")
                self._emit_expr(expr.arg, env)
                self._emit("i64.sub")
            elif expr.op == Op.NOT:
                # True and False are 4 and 2
                self._emit(f"i64.const {values.TRUE + values.FALSE}")
                self._emit_expr(expr.arg, env)
                self._emit("i64.sub")
            else:
                raise CodeGenError(f"Invalid unary operator: {expr.op}")
            return

        if isinstance(expr, BinaryExpr):
            self._emit_binary(expr, env)
            return

        if isinstance(expr, Builtin1):
            self._emit_expr(expr.arg, env)
            self._emit(f"call ${expr.name}")
            return

        if isinstance(expr, Builtin2):
            self._emit_expr(expr.left, env)
            self._emit_expr(expr.right, env)
            self._emit(f"call ${expr.name}")
            return

        if isinstance(expr, Call):
            for arg in expr.args:
                self._emit_expr(arg, env)
            self._emit(f"call ${expr.name}")
            return

        raise CodeGenError(f"Unknown expression: {type(expr).__name__}")

    def _emit_binary(self, expr: BinaryExpr, env: Environment) -> None:
        arith = _ARITH_INSTR.get(expr.op)
        if arith is not None:
            self._emit_expr(expr.left, env)
            self._emit_decode()
            self._emit_expr(expr.right, env)
            self._emit_decode()
            self._emit(arith)
            # re-encode: 2n+1
            self._emit("i64.const 1")
            self._emit("i64.shl")
            self._emit("i64.const 1")
            self._emit("i64.or")
            return

        compare = _COMPARE_INSTR.get(expr.op)
        if compare is None:
            raise CodeGenError(f"Invalid binary operator: {expr.op}")
        self._emit_expr(expr.left, env)
        self._emit_expr(expr.right, env)
        self._emit(compare)
        # i32 flag c -> bool word 2 + 2c
        self._emit("i64.extend_i32_u")
        self._emit("i64.const 1")
        self._emit("i64.shl")
        self._emit(f"i64.const {values.FALSE}")
        self._emit("i64.add")

    def _emit_int_const(self, n: int) -> None:
        try:
            word = values.encode_int(n)
        except OverflowError as e:
            raise CodeGenError(str(e))
        self._emit(f"i64.const {word}")

    def _emit_decode(self) -> None:
        self._emit("i64.const 1")
        self._emit("i64.shr_s")
