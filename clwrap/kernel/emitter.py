"""
Generates Python wrapper modules from kernel descriptors.

Each kernel becomes a class deriving from `KernelWrapperBase`, with a private
`_run` dispatch routine that binds every argument at its declared position,
and public `run_<D>d` / `enqueue_run_<D>d` methods for D = 1, 2, 3. The
`run_` methods wait for the launch to complete; the `enqueue_run_` methods
return the `pyopencl.Event` right away.
"""

from keyword import iskeyword
from os.path import basename
from textwrap import dedent, indent

from .descriptor import Qualifier
from .typemap import VECTOR_TYPES, VECTOR_WIDTHS, dtype_expression, is_vector_type

RUNTIME_MODULE = "clwrap.kernel.library"
DIMENSIONS = (1, 2, 3)
AXES = (0, 1, 2)

# names used by the generated methods and module-level names they refer to
RESERVED_NAMES = {
    "annotations",
    "numpy",
    "pyopencl",
    "Buffer",
    "KernelWrapperBase",
    "application_path",
    "KERNEL_SOURCE",
    *(f"{base}{width}" for base in VECTOR_TYPES for width in VECTOR_WIDTHS),
    "self",
    "command_queue",
    "wait_for",
    "event",
    "global_size",
    "local_size",
    "global_work_size",
    "local_work_size",
    *(f"global_work_size{n}" for n in AXES),
    *(f"local_work_size{n}" for n in AXES),
}

MODULE_HEADER = '''\
"""
Kernel wrappers generated from {filename}

This module is generated by clwrap. Do not edit it; changes will be lost the
next time it is generated.
"""
'''


def python_name(name):
    """
    Return `name`, with a trailing underscore if it would clash in Python.
    """
    if iskeyword(name) or name in RESERVED_NAMES:
        return f"{name}_"
    return name


def parameter_list(descriptor):
    return [
        f"{python_name(arg.parameter_name)}: {arg.parameter_type}"
        for arg in descriptor.args
    ]


def argument_names(descriptor):
    return [python_name(arg.parameter_name) for arg in descriptor.args]


def set_argument(arg):
    """
    Return the statement that binds one argument at its position.
    """
    name = python_name(arg.parameter_name)
    dtype = dtype_expression(arg.host_type)

    if arg.qualifier is Qualifier.GLOBAL:
        return f"self.set_arg({arg.position}, {name})"
    if arg.qualifier is Qualifier.LOCAL:
        return f"self.set_local_arg({arg.position}, {name}, {dtype})"
    return f"self.set_value_arg({arg.position}, {name}, {dtype})"


def signature(params):
    body = "".join(f"    {p},\n" for p in params)
    return f"(\n{body})"


def emit_private_run(descriptor):
    params = ["self", "command_queue: pyopencl.CommandQueue"]
    params += parameter_list(descriptor)
    params += [f"global_work_size{n}: int = 0" for n in AXES]
    params += [f"local_work_size{n}: int = 0" for n in AXES]
    params += ["*wait_for: pyopencl.Event"]

    body = [
        "global_size, local_size = self.get_launch_sizes(",
        "    (global_work_size0, global_work_size1, global_work_size2),",
        "    (local_work_size0, local_work_size1, local_work_size2),",
        ")",
    ]
    body += [set_argument(arg) for arg in descriptor.args]
    body += ["return self.enqueue(command_queue, global_size, local_size, wait_for)"]

    return (
        f"def _run{signature(params)} -> pyopencl.Event:\n"
        + indent("\n".join(body), "    ")
        + "\n"
    )


def emit_dispatch(descriptor, dim, blocking):
    """
    Return the source of `run_<dim>d` (blocking) or `enqueue_run_<dim>d`.
    """
    if dim == 1:
        global_names = ["global_work_size"]
        local_names = ["local_work_size"]
    else:
        global_names = [f"global_work_size{n}" for n in AXES[:dim]]
        local_names = [f"local_work_size{n}" for n in AXES[:dim]]

    params = ["self", "command_queue: pyopencl.CommandQueue"]
    params += parameter_list(descriptor)
    params += [f"{name}: int" for name in global_names]
    params += [f"{name}: int = 0" for name in local_names]
    params += ["*wait_for: pyopencl.Event"]

    padding = ["0"] * (3 - dim)
    forward = ["command_queue"] + argument_names(descriptor)
    forward += global_names + padding + local_names + padding
    forward += ["*wait_for"]
    call = "self._run(\n" + "".join(f"    {a},\n" for a in forward) + ")"

    if blocking:
        name = f"run_{dim}d"
        doc = f"Launch the kernel on a {dim}-D grid and wait for it to finish."
        returns = "None"
        body = f"event = {call}\nevent.wait()"
    else:
        name = f"enqueue_run_{dim}d"
        doc = f"Enqueue the kernel on a {dim}-D grid and return its event."
        returns = "pyopencl.Event"
        body = f"return {call}"

    return (
        f"def {name}{signature(params)} -> {returns}:\n"
        f'    """{doc}"""\n' + indent(body, "    ") + "\n"
    )


def emit_properties(descriptor, unit):
    kernel_path = f"application_path({unit.output_path!r})"
    kernel_source = "KERNEL_SOURCE" if unit.embed_source else kernel_path

    return dedent(
        f"""\
        embedded_source = {unit.embed_source!r}

        @property
        def kernel_source(self) -> str:
            return {kernel_source}

        @property
        def kernel_name(self) -> str:
            return {descriptor.name!r}

        @property
        def kernel_path(self) -> str:
            return {kernel_path}

        @property
        def original_kernel_path(self) -> str:
            return {unit.path!r}

        def __init__(self, context: pyopencl.Context, device: pyopencl.Device = None):
            super().__init__(context, device)
        """
    )


def emit_class(descriptor, unit):
    """
    Return the source of the wrapper class for one kernel.
    """
    params = ", ".join(arg.identifier for arg in descriptor.args)
    members = [emit_properties(descriptor, unit), emit_private_run(descriptor)]

    for dim in DIMENSIONS:
        members.append(emit_dispatch(descriptor, dim, blocking=True))
        members.append(emit_dispatch(descriptor, dim, blocking=False))

    return (
        f"class {python_name(descriptor.name)}(KernelWrapperBase):\n"
        f'    """Wrapper for kernel {descriptor.name}({params})"""\n\n'
        + indent("\n".join(members), "    ")
    )


def vector_imports(descriptors):
    names = {
        arg.host_type
        for descriptor in descriptors
        for arg in descriptor.args
        if is_vector_type(arg.host_type)
    }
    return sorted(names)


def emit_module(unit, descriptors, imports=(), runtime_module=RUNTIME_MODULE, header=True):
    """
    Return the source of the Python module generated for one kernel file.

    `unit` is the `SourceUnit` the kernels were parsed from, `descriptors`
    the kernel descriptors in source order, and `imports` the module names
    requested by `using` directives.
    """
    blocks = list()

    if header:
        blocks.append(MODULE_HEADER.format(filename=basename(unit.path)))

    lines = ["from __future__ import annotations", ""]

    if descriptors:
        lines += ["import numpy", "import pyopencl"]
        if vectors := vector_imports(descriptors):
            lines.append(f"from pyopencl.cltypes import {', '.join(vectors)}")
        lines += [
            "",
            f"from {runtime_module} import Buffer, KernelWrapperBase, application_path",
        ]

    if imports:
        lines.append("")
        lines += [f"import {name}" for name in imports]

    blocks.append("\n".join(lines) + "\n")

    if descriptors and unit.embed_source:
        blocks.append(f"KERNEL_SOURCE = {unit.text!r}\n")

    for descriptor in descriptors:
        blocks.append("\n" + emit_class(descriptor, unit))

    return "\n".join(blocks)
