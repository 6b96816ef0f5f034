"""
Functions for querying OpenCL platforms and configuring the wrapper runtime.
"""

__version__ = "0.1.0"

import contextlib
import logging
import sys
import time
from os import getcwd
from os.path import abspath, dirname

logger = logging.getLogger(__name__)


runtime_config = {
    "base_directory": None,
}


def configure_runtime(base_directory=None):
    """
    Initiate the `runtime_config` module-level variable.

    The base directory is where generated wrappers look for kernel source
    files that were copied to the output directory rather than embedded. It
    defaults to the directory of the application's main script.
    """
    runtime_config["base_directory"] = base_directory
    logger.info(f"kernel base directory is {application_base_directory()}")


def application_base_directory():
    """
    Return the directory against which non-embedded kernel paths resolve.
    """
    if runtime_config["base_directory"] is not None:
        return runtime_config["base_directory"]

    main = sys.modules.get("__main__")
    path = getattr(main, "__file__", None)
    return dirname(abspath(path)) if path else getcwd()


def opencl_info():
    """
    Describe the available OpenCL platforms and their devices.

    Returns `None` if no OpenCL platform can be found.
    """
    import pyopencl as cl

    try:
        platforms = cl.get_platforms()
    except cl.Error as e:
        logger.debug(f"{e}; no OpenCL platforms")
        return None

    return [
        dict(
            name=platform.name,
            vendor=platform.vendor,
            version=platform.version,
            devices=[
                dict(
                    name=device.name,
                    type=cl.device_type.to_string(device.type),
                    compute_units=device.max_compute_units,
                    global_mem_size=device.global_mem_size,
                    local_mem_size=device.local_mem_size,
                )
                for device in platform.get_devices()
            ],
        )
        for platform in platforms
    ]


def system_info():
    from platform import node, machine, processor, platform, system, release
    from os import cpu_count
    from datetime import datetime

    host = dict()
    host["node"] = node()
    host["machine"] = machine()
    host["processor"] = processor()
    host["cpu_count"] = cpu_count()
    host["platform"] = platform()
    host["system"] = system()
    host["release"] = release()

    code = dict()
    code["version"] = __version__
    code["python"] = sys.version.split()[0]

    return dict(
        host=host,
        code=code,
        opencl=opencl_info(),
        datetime=str(datetime.now()),
    )


@contextlib.contextmanager
def measure_time(command_queue=None) -> float:
    """
    A context manager to measure the execution time of a piece of code.

    If a command queue is given, it is finished before the timer is read.

    Example:

    .. code-block:: python

        with measure_time() as duration:
            expensive_function()
        print(f"execution took {duration()} seconds")
    """
    try:
        start = time.perf_counter()
        yield lambda: time.perf_counter() - start
    finally:
        if command_queue is not None:
            command_queue.finish()
