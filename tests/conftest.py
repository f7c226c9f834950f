"""
Pytest fixtures for chocowat tests.

Provides:
- compiling source text to WAT
- running a WAT module on wasmtime with the Python host stub
"""

import io

import pytest

from chocowat.compiler import compile_program
from chocowat.host import HostRuntime
from chocowat.parser import parse_program


@pytest.fixture
def compile_source():
    """Return a function compiling source text to WAT (raises on errors)."""
    def _compile(source: str, **kwargs) -> str:
        return compile_program(parse_program(source), **kwargs)
    return _compile


@pytest.fixture
def run_wat():
    """
    Return a function running `_start` of a WAT module.

    Usage:
        value = run_wat(wat_text, host)
        assert value == 5
        assert host.output == ["1"]
    """
    wasmtime = pytest.importorskip("wasmtime")

    def _run(wat: str, host: HostRuntime = None):
        if host is None:
            host = HostRuntime(stream=io.StringIO())
        engine = wasmtime.Engine()
        store = wasmtime.Store(engine)
        module = wasmtime.Module(engine, wat)
        procedures = host.imports()

        externs = []
        for imp in module.imports:
            if isinstance(imp.type, wasmtime.MemoryType):
                externs.append(wasmtime.Memory(store, imp.type))
            else:
                externs.append(wasmtime.Func(store, imp.type, procedures[imp.name]))

        instance = wasmtime.Instance(store, module, externs)
        return instance.exports(store)["_start"](store)

    return _run


@pytest.fixture
def run_source(compile_source, run_wat):
    """Compile and run source text; returns (result, host)."""
    def _run(source: str):
        host = HostRuntime(stream=io.StringIO())
        return run_wat(compile_source(source), host), host
    return _run
