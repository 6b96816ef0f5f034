"""
Configuration models for the wrapper generator
"""

from typing import Optional
from .schema import schema

USER_CONFIG_FILE = ".clwrap"


class ConfigurationError(Exception):
    """An invalid generator configuration"""


@schema
class Codegen:
    """
    Controls how kernel declarations are read and wrappers are written

    Declarations that cannot be parsed are skipped unless strict mode is on.
    Generated modules import their runtime base class from the runtime
    module, which must provide `KernelWrapperBase`, `Buffer`, and
    `application_path`.

    Fields
    ------

    strict:         raise an error on kernel declarations that do not parse
    runtime_module: module the generated wrappers import their base class from
    header:         write a docstring naming the source file at the top of each module
    """

    strict: bool = False
    runtime_module: str = "clwrap.kernel.library"
    header: bool = True


@schema
class Build:
    """
    Deals with input kernel files and the generated modules

    Each kernel file produces one Python module. Kernel sources copied to
    the output directory are referenced by path from the generated wrappers;
    otherwise the full kernel text is embedded in the module.

    Fields
    ------

    copy_to_output:   copy kernel sources to the output directory instead of embedding them
    root:             directory that output paths of kernel files are relative to
    output_directory: directory for generated modules and copied kernels
    suffix:           file name suffix of generated modules
    """

    copy_to_output: bool = False
    root: Optional[str] = None
    output_directory: Optional[str] = None
    suffix: str = "_kernels.py"


@schema
class Clwrap:
    """
    Top-level generator configuration
    """

    codegen: Codegen = Codegen()
    build: Build = Build()


def load_user_config(filename=USER_CONFIG_FILE):
    """
    Read configuration overrides from an INI file, if it exists.

    Sections of the file are named after the configuration models, e.g.
    `[codegen]` and `[build]`. Returns a nested dictionary suitable for
    updating `asdict(Clwrap())`.
    """
    from configparser import ConfigParser, Error

    config = ConfigParser()

    try:
        config.read(filename)
    except Error as e:
        raise ConfigurationError(f"badly formed config file {filename}: {e}")

    overrides = dict()

    for section in config.sections():
        if section not in Clwrap.__dataclass_fields__:
            raise ConfigurationError(f"unknown section [{section}] in {filename}")
        overrides[section] = dict(config[section])

    return overrides


def add_config_arguments(parser: "argparse.ArgumentParser"):
    """
    Add arguments to a parser controlling a subset of a Clwrap config struct
    """

    parser.add_argument(
        "--strict",
        action="store_const",
        const=True,
        default=None,
        help=Codegen.describe("strict"),
        dest="codegen.strict",
    )
    parser.add_argument(
        "--runtime-module",
        metavar="M",
        help=Codegen.describe("runtime_module"),
        dest="codegen.runtime_module",
    )
    parser.add_argument(
        "--no-header",
        action="store_const",
        const=False,
        default=None,
        help="do not write a docstring at the top of generated modules",
        dest="codegen.header",
    )
    parser.add_argument(
        "--copy-to-output",
        action="store_const",
        const=True,
        default=None,
        help=Build.describe("copy_to_output"),
        dest="build.copy_to_output",
    )
    parser.add_argument(
        "--root",
        metavar="D",
        help=Build.describe("root"),
        dest="build.root",
    )
    parser.add_argument(
        "-o",
        "--output-directory",
        metavar="D",
        help=Build.describe("output_directory"),
        dest="build.output_directory",
    )
    parser.add_argument(
        "--suffix",
        metavar="S",
        help=Build.describe("suffix"),
        dest="build.suffix",
    )
