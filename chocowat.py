#!/usr/bin/env python3
"""chocowat - top-level CLI wrapper

Compatible with Python 3.8+.

Usage examples:
  ./chocowat.py examples/fib.py -o fib.wat
  ./chocowat.py input.py -o out.wasm
  ./chocowat.py input.py -S
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from chocowat.compiler import Compiler


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    ap = argparse.ArgumentParser(prog="chocowat", description="Typed Python subset to WebAssembly compiler")
    ap.add_argument("source", help="Input source file")
    ap.add_argument("-o", dest="output", required=False, help="Output: .wat or .wasm")
    ap.add_argument("-S", dest="emit_stdout", action="store_true", help="Write the WAT module to stdout")
    ap.add_argument("--memory-pages", type=int, default=None, help="Linear memory size in 64 KiB pages")
    args = ap.parse_args(argv)

    if not args.output and not args.emit_stdout:
        print("Error: -o is required unless -S is used")
        return 1

    compiler = Compiler(memory_pages=args.memory_pages)
    result = compiler.compile_file(args.source, args.output)
    if not result.success:
        for e in result.errors:
            print("Error:", e)
        return 1

    if args.emit_stdout:
        sys.stdout.write(result.assembly)
    if args.output:
        print("Done:", args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
