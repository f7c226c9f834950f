"""
chocowat - typed Python subset to WebAssembly text compiler

Checks a statically typed subset of Python (int, bool, None, functions,
if/while) and emits a WebAssembly text module that keeps every value in a
tagged 64-bit word.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .parser import parse_program, ParseError
from .semantics import SemanticAnalyzer, SemanticError
from .environment import Environment
from .codegen import CodeGenerator
from .compiler import Compiler, compile_program

__all__ = [
    'parse_program',
    'ParseError',
    'SemanticAnalyzer',
    'SemanticError',
    'Environment',
    'CodeGenerator',
    'Compiler',
    'compile_program',
]
