#!/usr/bin/env python3
"""
gen_bindings.py - binding generator entry point

Generates Lua bindings and LuaCATS annotations from specification files.

Usage:
    python scripts/gen_bindings.py --spec spec.yml [--spec more.yml] [--output DIR]
                                   [--module NAME] [--backend lua] [--formatter CMD]
                                   [--dump-model]
"""

import argparse
import os
import sys

# Add scripts directory to path
script_dir = os.path.dirname(os.path.abspath(__file__))
if script_dir not in sys.path:
    sys.path.insert(0, script_dir)

from spec_bindgen import BindgenError, Generator, GeneratorConfig


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Generate bindings from specification files')
    parser.add_argument('--spec', action='append', required=True, dest='specs',
                        help='Specification file (YAML or JSON); may be repeated')
    parser.add_argument('--output', default='gen',
                        help='Output directory')
    parser.add_argument('--module', default='bindings',
                        help='Lua module name')
    parser.add_argument('--backend', action='append', dest='backends', default=None,
                        help='Backend to run (lua, luacats); may be repeated, defaults to all')
    parser.add_argument('--formatter', default=None,
                        help='Command run over generated C++ files, eg "clang-format -i"')
    parser.add_argument('--dump-model', action='store_true',
                        help='Print the bound model as YAML instead of generating')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = GeneratorConfig(
        spec_paths=args.specs,
        output_dir=args.output,
        module_name=args.module,
        formatter=args.formatter,
    )
    if args.backends:
        config.backends = args.backends

    gen = Generator(config)
    try:
        if args.dump_model:
            print(gen.dump_model(), end='')
        else:
            gen.generate()
    except (BindgenError, OSError) as err:
        print(f'ERROR {err}', file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
