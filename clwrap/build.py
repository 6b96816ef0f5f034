"""
Generates wrapper modules for OpenCL kernel source files.

Each input file is read into a `SourceUnit`, parsed for kernel declarations,
and written out as one Python module. A kernel file that is copied to the
output directory is referenced from its wrappers by path, and is loaded when
the wrapper is prepared; otherwise its full text is embedded in the module.
"""

from logging import getLogger
from os import getcwd, makedirs
from os.path import abspath, basename, dirname, exists, join, relpath, samefile, splitext
from shutil import copyfile
from typing import NamedTuple

from .config import Build, Clwrap, Codegen
from .kernel.descriptor import build_descriptors
from .kernel.emitter import emit_module
from .kernel.parse_api import parse_api
from .kernel.system import measure_time

logger = getLogger(__name__)


class SourceUnit(NamedTuple):
    """
    One kernel source file and its build metadata.
    """

    path: str
    text: str
    embed_source: bool
    output_path: str

    @classmethod
    def load(cls, path, copy_to_output=False, link=None, root=None):
        """
        Read a kernel file and decide how its wrappers refer to it.

        The output path is `link` if given, else the file's path relative to
        `root` (the working directory by default).
        """
        with open(path) as f:
            text = f.read()

        return cls(
            path=abspath(path),
            text=text,
            embed_source=not copy_to_output,
            output_path=link or relpath(path, root or getcwd()),
        )


def process_kernel_file(unit: SourceUnit, codegen: Codegen = Codegen()) -> str:
    """
    Return the source of the wrapper module for one kernel file.
    """
    api = parse_api(unit.text, strict=codegen.strict, filename=unit.path)
    descriptors = build_descriptors(api.kernels)

    return emit_module(
        unit,
        descriptors,
        api.imports,
        runtime_module=codegen.runtime_module,
        header=codegen.header,
    )


def output_module_path(path, build: Build = Build()):
    stem = splitext(basename(path))[0]
    return join(build.output_directory or dirname(path), stem + build.suffix)


def copy_kernel_source(unit: SourceUnit, build: Build = Build()):
    """
    Copy a kernel file to its output path under the output directory.
    """
    target = join(build.output_directory or getcwd(), unit.output_path)

    if exists(target) and samefile(unit.path, target):
        return target

    makedirs(dirname(target) or ".", exist_ok=True)
    copyfile(unit.path, target)
    logger.debug(f"copy {unit.path} to {target}")
    return target


def split_source(source):
    """
    Split a `path=link` source argument into the file path and its link.

    The link, if given, replaces the file's output path: the location of the
    copied kernel file under the output directory, relative to the runtime
    application path. A source naming an existing file has no link.
    """
    if exists(source):
        return source, None
    path, _, link = str(source).partition("=")
    return path, link or None


def generate(sources, config: Clwrap = Clwrap()):
    """
    Write one wrapper module per kernel file and return the module paths.

    Each source is a file path, optionally followed by `=link`.
    """
    outputs = list()

    for source in sources:
        path, link = split_source(source)
        unit = SourceUnit.load(
            path,
            copy_to_output=config.build.copy_to_output,
            link=link,
            root=config.build.root,
        )
        with measure_time() as duration:
            code = process_kernel_file(unit, config.codegen)

        target = output_module_path(path, config.build)
        makedirs(dirname(target) or ".", exist_ok=True)

        with open(target, "w") as f:
            f.write(code)

        if not unit.embed_source:
            copy_kernel_source(unit, config.build)

        logger.info(
            f"generate kernel wrappers for {basename(path)} -> {target} "
            f"[{duration():.3f} s]"
        )
        outputs.append(target)

    return outputs
