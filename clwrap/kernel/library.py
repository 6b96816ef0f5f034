"""
Defines `KernelWrapperBase`, the runtime base of generated kernel wrappers.

A wrapper goes through two stages. Constructing it against a context
*prepares* the kernel: the program is created from the kernel source but not
built for any device. Calling `build(device)` compiles the program for that
device and creates the native kernel object; only then can the kernel be
launched. Passing `device=` to the constructor does both at once.

A wrapper instance owns one kernel object. Setting its arguments and
enqueuing it is not safe to do from several threads at once; callers must
serialize launches on the same instance.
"""

from logging import getLogger
from os.path import join
from typing import Generic, TypeVar

import numpy
import pyopencl as cl

from .system import application_base_directory

logger = getLogger(__name__)
T = TypeVar("T")


class InvalidWorkDimension(ValueError):
    """Work sizes do not describe a 1, 2, or 3 dimensional grid"""


class KernelNotBuilt(RuntimeError):
    """A kernel was launched before it was built for a device"""


class KernelBuildError(RuntimeError):
    """The kernel program failed to build"""

    def __init__(self, kernel_name, build_log):
        self.kernel_name = kernel_name
        self.build_log = build_log
        super().__init__(f"error building kernel {kernel_name}: {build_log}")


class Buffer(Generic[T]):
    """
    Type hint for a device buffer holding elements of type `T`.

    Global arguments of generated wrappers are annotated with it; the value
    passed at runtime is a `pyopencl.Buffer` or another memory object.
    """


def application_path(relative_path):
    """
    Resolve a kernel's output-relative path against the application directory.
    """
    return join(application_base_directory(), relative_path)


def work_dimension(x, y, z):
    """
    Return the number of leading non-zero work-size components.

    Components must be given in order: `y` may only be set if `x` is, and `z`
    only if `y` is. Any other pattern, or a negative size, raises
    `InvalidWorkDimension`. All-zero sizes give a dimension of 0.
    """
    sizes = (x, y, z)
    dim = sum(1 for s in sizes if s != 0)

    if any(s < 0 for s in sizes) or any(s == 0 for s in sizes[:dim]):
        raise InvalidWorkDimension(f"invalid work dimension for work sizes {sizes}")
    return dim


def get_work_sizes(x, y, z):
    """
    Return a tuple of the leading non-zero work sizes, or `None` if all are 0.
    """
    dim = work_dimension(x, y, z)
    return (x, y, z)[:dim] if dim else None


def get_launch_sizes(global_work_size, local_work_size):
    """
    Return the global and local size tuples for a kernel launch.

    The global size must have dimension 1, 2, or 3. The local size may be
    `None` (left to the runtime) or must have the same dimension.
    """
    global_size = get_work_sizes(*global_work_size)
    local_size = get_work_sizes(*local_work_size)

    if global_size is None:
        raise InvalidWorkDimension("at least one global work size must be non-zero")
    if local_size is not None and len(local_size) != len(global_size):
        raise InvalidWorkDimension(
            f"local work size {local_size} does not match "
            f"the dimension of global work size {global_size}"
        )
    return global_size, local_size


def build_log(program, device, error=None):
    try:
        log = program.get_build_info(device, cl.program_build_info.LOG)
    except cl.Error:
        log = str()
    return log.strip() or str(error or str())


class KernelWrapperBase:
    """
    Base class of generated kernel wrappers.

    Subclasses provide the `kernel_source`, `kernel_name`, `kernel_path` and
    `original_kernel_path` properties, and the launch methods.
    """

    embedded_source = True

    def __init__(self, context, device=None):
        self._context = context
        self._program = None
        self._kernel = None
        self.prepare()

        if device is not None:
            self.build(device)

    @property
    def kernel_source(self) -> str:
        raise NotImplementedError

    @property
    def kernel_name(self) -> str:
        raise NotImplementedError

    @property
    def kernel_path(self) -> str:
        raise NotImplementedError

    @property
    def original_kernel_path(self) -> str:
        raise NotImplementedError

    @property
    def context(self):
        return self._context

    @property
    def program(self):
        return self._program

    @property
    def kernel(self):
        return self._kernel

    @property
    def stage(self):
        """
        Either "prepared" or "built".
        """
        return "prepared" if self._kernel is None else "built"

    def source_text(self):
        """
        The kernel source code, read from `kernel_source` if not embedded.
        """
        if self.embedded_source:
            return self.kernel_source

        with open(self.kernel_source) as f:
            return f.read()

    def prepare(self):
        """
        Create the program from the kernel source, without building it.
        """
        self._program = cl.Program(self._context, self.source_text())
        logger.debug(f"prepare kernel {self.kernel_name}")

    def build(self, device, options=None):
        """
        Build the program for a device and create the kernel object.

        Raises `KernelBuildError` carrying the native build log if the program
        does not build.
        """
        program = cl.Program(self._context, self.source_text())

        try:
            program.build(options=options or [], devices=[device])
        except cl.Error as e:
            raise KernelBuildError(self.kernel_name, build_log(program, device, e))

        status = program.get_build_info(device, cl.program_build_info.STATUS)

        if status == cl.build_status.ERROR:
            raise KernelBuildError(self.kernel_name, build_log(program, device))

        self._program = program
        self._kernel = cl.Kernel(program, self.kernel_name)
        logger.info(f"build kernel {self.kernel_name} for {device.name}")
        return self._kernel

    def require_kernel(self):
        if self._kernel is None:
            raise KernelNotBuilt(
                f"kernel {self.kernel_name} must be built for a device before launch"
            )
        return self._kernel

    def set_arg(self, position, handle):
        """
        Bind a memory object handle, e.g. a `pyopencl.Buffer`.
        """
        self.require_kernel().set_arg(position, handle)

    def set_local_arg(self, position, length, dtype=None):
        """
        Reserve local memory for `length` elements of `dtype`.

        Only the allocation size is sent to the kernel, no value.
        """
        itemsize = numpy.dtype(dtype).itemsize if dtype is not None else 1
        self.require_kernel().set_arg(position, cl.LocalMemory(length * itemsize))

    def set_value_arg(self, position, value, dtype=None):
        """
        Bind a value argument by its size and address.

        The value is converted to an array of the argument's type, whose
        buffer gives the byte size and address passed to the kernel. Memory
        objects and samplers are bound as handles. With no dtype, the value's
        own array representation is used.
        """
        if isinstance(value, (cl.MemoryObjectHolder, cl.Sampler)):
            payload = value
        else:
            payload = numpy.asarray(value, dtype=dtype)
        self.require_kernel().set_arg(position, payload)

    def get_launch_sizes(self, global_work_size, local_work_size):
        return get_launch_sizes(global_work_size, local_work_size)

    def enqueue(self, command_queue, global_size, local_size, wait_for=()):
        """
        Enqueue the kernel and return the event for its completion.
        """
        return cl.enqueue_nd_range_kernel(
            command_queue,
            self.require_kernel(),
            global_size,
            local_size,
            wait_for=list(wait_for) or None,
        )
