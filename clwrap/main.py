"""
clwrap main program
"""

from argparse import ArgumentParser, SUPPRESS
from collections.abc import Mapping
from dataclasses import asdict
from logging import getLogger

from pydantic import ValidationError

from .config import (
    Clwrap,
    Codegen,
    Build,
    ConfigurationError,
    add_config_arguments,
    load_user_config,
)
from .kernel.parse_api import KernelSyntaxError
from .kernel.system import system_info

logger = getLogger(__name__)


def deep_update(d: dict, u: dict) -> dict:
    """
    Update `d` and any nested dictionaries recursively with values from `u`
    """
    for k, v in u.items():
        if isinstance(v, Mapping):
            d[k] = deep_update(d.setdefault(k, dict()), v)
        elif isinstance(d, Mapping):
            d[k] = v
        elif d is None:
            d = u
    return d


def unflatten(d: dict) -> dict:
    """
    Create a nested dict from a flat one with keys like a.b.c
    """
    res = dict()
    for key, value in d.items():
        parts = key.split(".")
        d = res
        for part in parts[:-1]:
            if part not in d:
                d[part] = dict()
            d = d[part]
        d[parts[-1]] = value
    return res


def init_logging(level):
    from rich.console import Console
    from rich.logging import RichHandler

    console = Console()
    handler = RichHandler(omit_repeated_times=False, console=console)
    logger = getLogger("clwrap")
    logger.addHandler(handler)
    logger.setLevel(level.upper())

    return console


def clwrap(args, console):
    """
    Return the generator config from defaults, the user file, and arguments

    Values on the command line take precedence over those in the user config
    file, which take precedence over the model defaults.
    """
    overrides = unflatten(
        {k: v for k, v in vars(args).items() if v is not None and k[0] != "_"}
    )
    s = asdict(Clwrap())
    deep_update(s, load_user_config(args._config_file))
    deep_update(s, overrides)

    try:
        return Clwrap(**s)
    except ValidationError as e:
        console.print("[red]configuration error[/red]:")
        print(e)
        return None


def generate(args=None, console=None, parser=None):
    """
    Generate Python wrapper modules for OpenCL kernel files
    """
    if parser:
        parser.add_argument(
            "_sources",
            metavar="sources",
            nargs="+",
            help="OpenCL C source files (e.g. kernels.cl), each optionally followed "
            "by =link, the path of its copy under the output directory",
        )
        config = parser.add_argument_group("config")
        add_config_arguments(config)

    else:
        from .build import generate as generate_modules

        if (config := clwrap(args, console)) is None:
            return 1

        for output in generate_modules(args._sources, config):
            console.print(f"[green]wrote[/green] {output}")


def parse(args=None, console=None, parser=None):
    """
    Show the kernels declared in OpenCL kernel files
    """
    if parser:
        parser.add_argument(
            "_sources",
            metavar="sources",
            nargs="+",
            help="OpenCL C source files",
        )
        parser.add_argument(
            "--strict",
            dest="_strict",
            action="store_true",
            help=Codegen.describe("strict"),
        )
    else:
        from rich.markup import escape
        from rich.table import Table
        from rich import box
        from .kernel.descriptor import build_descriptors
        from .kernel.parse_api import parse_api

        for source in args._sources:
            with open(source) as f:
                api = parse_api(f.read(), strict=args._strict, filename=source)

            table = Table(title=source, title_justify="left", box=box.MINIMAL)
            table.add_column("kernel", style="cyan")
            table.add_column("position")
            table.add_column("argument", style="green")
            table.add_column("qualifier")
            table.add_column("type", style="magenta")

            for kernel in build_descriptors(api.kernels):
                table.add_row(kernel.name)
                for arg in kernel.args:
                    table.add_row(
                        "",
                        str(arg.position),
                        arg.parameter_name,
                        arg.qualifier.value,
                        escape(arg.parameter_type),
                    )

            console.print(table)

            for name in api.imports:
                console.print(f"using [blue]{name}[/blue]")


def doc(args=None, console=None, parser=None):
    """
    Display configuration documentation
    """
    choices = ("config", "types")

    if parser:
        parser.add_argument("topic", nargs="?", choices=choices, default="config")
    else:
        from rich.table import Table
        from rich import box
        from .kernel.typemap import SCALAR_TYPES, VECTOR_TYPES

        console.width = 100

        if args.topic == "config":
            console.print(next(Codegen().rich_table(console, None)))
            console.print("\n\n")
            console.print(next(Build().rich_table(console, None)))

        if args.topic == "types":
            table = Table(box=box.MINIMAL)
            table.add_column("OpenCL type", style="cyan")
            table.add_column("Python type", style="magenta")

            for dialect_type, host_type in SCALAR_TYPES.items():
                table.add_row(dialect_type, host_type)
            for base in VECTOR_TYPES:
                table.add_row(f"{base}N", f"pyopencl.cltypes.{base}N")

            console.print(table)


def sys(args=None, console=None, parser=None):
    """
    Show platform information
    """
    if parser:
        pass
    else:
        console.print(system_info())


def argument_parser():
    """
    Create an argument parser instance for running from the command line
    """
    parser = ArgumentParser(
        prog="clwrap",
        usage=SUPPRESS,
        description="clwrap generates Python wrapper classes for OpenCL kernels",
    )
    parser.set_defaults(_command=None)
    parser.add_argument(
        "--log-level",
        dest="_log_level",
        default="warning",
        choices=("debug", "info", "warning", "error", "critical"),
        help="log messages at and above this severity level",
    )
    parser.add_argument(
        "--config-file",
        dest="_config_file",
        metavar="F",
        default=".clwrap",
        help="INI file with [codegen] and [build] sections",
    )

    subparsers = parser.add_subparsers()
    _generate = subparsers.add_parser(
        "generate", usage=SUPPRESS, help=generate.__doc__
    )
    _parse = subparsers.add_parser("parse", usage=SUPPRESS, help=parse.__doc__)
    _doc = subparsers.add_parser("doc", usage=SUPPRESS, help=doc.__doc__)
    _sys = subparsers.add_parser("sys", usage=SUPPRESS, help=sys.__doc__)

    _generate.set_defaults(_command=generate)
    _parse.set_defaults(_command=parse)
    _doc.set_defaults(_command=doc)
    _sys.set_defaults(_command=sys)

    generate(parser=_generate)
    parse(parser=_parse)
    doc(parser=_doc)
    sys(parser=_sys)

    return parser


def main(argv=None):
    """
    Main clwrap entry point and command line interface
    """
    try:
        parser = argument_parser()
        args = parser.parse_args(argv)
        console = init_logging(args._log_level)

        if args._command:
            return args._command(args, console)
        else:
            from rich.syntax import Syntax

            examples = [
                "> clwrap generate kernels.cl          # write kernels_kernels.py",
                "> clwrap generate -o out *.cl         # write modules to out/",
                "> clwrap generate --copy-to-output a.cl=cl/a.cl  # copy to cl/a.cl",
                "> clwrap parse kernels.cl --strict    # list the declared kernels",
                "> clwrap doc config                   # describe the config options",
            ]
            parser.print_help()
            console.print()
            console.print("Examples:")
            console.print()
            for example in examples:
                console.print(Syntax(example, lexer="bash"))

    except KeyboardInterrupt:
        print()
        print("ctrl-c interrupt")

    except (ConfigurationError, KernelSyntaxError, OSError) as e:
        logger.error(e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
