"""chocowat.errors

Diagnostics raised while checking a program. Any of them aborts the compile;
only the first violation is ever reported.
"""


class SemanticError(Exception):
    """Semantic analysis error"""
    pass


class UnboundName(SemanticError):
    """A variable or function name with no binding in scope"""
    pass


class DuplicateDeclaration(SemanticError):
    """A name declared twice in the same scope"""
    pass


class TypeMismatch(SemanticError):
    """Operand, assignment, argument, condition or return of the wrong type"""
    pass


class ArityMismatch(SemanticError):
    """Call with the wrong number of arguments"""
    pass


class UnsupportedOperator(SemanticError):
    """Operator not valid for the expression it appears in"""
    pass
