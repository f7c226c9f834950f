"""
Main Compiler Driver

Orchestrates the compilation pipeline:

    source text -> parse -> type check -> WAT generation -> (.wat | .wasm)
"""

from __future__ import annotations

from typing import Optional, List
from dataclasses import dataclass
import os
import shutil
import subprocess
import tempfile

from chocowat.ast_nodes import Program
from chocowat.codegen import CodeGenerator, CodeGenError
from chocowat.environment import Environment
from chocowat.parser import ParseError, parse_program
from chocowat.semantics import SemanticAnalyzer, SemanticContext, SemanticError


def compile_program(program: Program, memory_pages: Optional[int] = None) -> str:
    """Check `program` and return its WAT module text.

    Raises the first `SemanticError` found; no text is produced in that case.
    """
    env = Environment.fresh()
    SemanticAnalyzer().analyze(program, env)
    return CodeGenerator(memory_pages=memory_pages).generate(program, env)


@dataclass
class CompilationResult:
    """Result of compilation"""
    success: bool
    output_file: Optional[str] = None
    errors: List[str] = None
    warnings: List[str] = None
    assembly: Optional[str] = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []
        if self.warnings is None:
            self.warnings = []


class Compiler:
    """Main compiler class orchestrating all compilation stages"""

    def __init__(self, *, memory_pages: Optional[int] = None):
        # Linear memory size in 64 KiB pages; None sizes it to the globals.
        self.memory_pages = memory_pages

        # External WAT -> binary assembler (wabt).
        self.assembler = os.environ.get("CHOCOWAT_WAT2WASM", "wat2wasm")

    def compile_file(self, source_file: str, output_file: Optional[str] = None) -> CompilationResult:
        """Compile a source file.

        If output_file endswith:
        - .wasm : assemble with the external wat2wasm tool
        - anything else : write the WAT text
        """
        try:
            with open(source_file, 'r', encoding='utf-8') as f:
                source_code = f.read()
        except IOError as e:
            return CompilationResult(
                success=False,
                errors=[f"Failed to read source file: {e}"]
            )
        return self.compile_code(source_code, output_file, source_path=source_file)

    def compile_code(self, source_code: str, output_file: Optional[str] = None, source_path: str = "<input>") -> CompilationResult:
        """Compile source code"""
        # Phase 1: Syntax Analysis
        try:
            ast = self.get_ast(source_code)
        except ParseError as e:
            return CompilationResult(success=False, errors=[f"Syntax analysis failed: {source_path}: {e}"])

        # Phase 2: Semantic Analysis
        env = Environment.fresh()
        try:
            self.analyze_semantics(ast, env)
        except SemanticError as e:
            return CompilationResult(
                success=False,
                errors=[f"Semantic analysis failed: {source_path}: {type(e).__name__}: {e}"],
            )

        # Phase 3: Code Generation
        try:
            assembly = self.get_assembly(ast, env)
        except CodeGenError as e:
            return CompilationResult(success=False, errors=[f"Code generation failed: {e}"])

        # Write output / assemble
        if output_file:
            if os.path.splitext(output_file)[1] == ".wasm":
                with tempfile.TemporaryDirectory() as td:
                    wat_path = os.path.join(td, "out.wat")
                    try:
                        with open(wat_path, 'w', encoding='utf-8') as f:
                            f.write(assembly)
                        self._assemble(wat_path, output_file)
                    except (IOError, RuntimeError, subprocess.CalledProcessError) as e:
                        detail = getattr(e, "stderr", None)
                        msg = f"Assembling failed: {e}"
                        if detail:
                            msg += f"\n{detail}"
                        return CompilationResult(success=False, errors=[msg], assembly=assembly)
            else:
                try:
                    with open(output_file, 'w', encoding='utf-8') as f:
                        f.write(assembly)
                except IOError as e:
                    return CompilationResult(success=False, errors=[f"Failed to write output file: {e}"])

        return CompilationResult(
            success=True,
            output_file=output_file,
            assembly=assembly,
        )

    def _assemble(self, wat_path: str, out_path: str) -> None:
        if not shutil.which(self.assembler):
            raise RuntimeError(f"assembler not found: {self.assembler} (install wabt or set CHOCOWAT_WAT2WASM)")
        cmd = [self.assembler, wat_path, "-o", out_path]
        p = subprocess.run(cmd, check=False, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        if p.returncode != 0:
            msg = p.stderr.strip() or p.stdout.strip() or "(no output)"
            raise subprocess.CalledProcessError(p.returncode, cmd, output=p.stdout, stderr=msg)

    def get_ast(self, source_code: str) -> Program:
        """Get AST from source code"""
        return parse_program(source_code)

    def analyze_semantics(self, ast: Program, env: Environment) -> SemanticContext:
        """Perform semantic analysis"""
        analyzer = SemanticAnalyzer()
        return analyzer.analyze(ast, env)

    def get_assembly(self, ast: Program, env: Environment) -> str:
        """Generate WAT from a checked AST"""
        generator = CodeGenerator(memory_pages=self.memory_pages)
        return generator.generate(ast, env)
