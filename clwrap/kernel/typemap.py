"""
Maps OpenCL C type names to the Python types used in generated wrappers.
"""

HANDLE_TYPE = "pyopencl.MemoryObject"

SCALAR_TYPES = {
    "bool": "numpy.bool_",
    "char": "numpy.int8",
    "uchar": "numpy.uint8",
    "unsigned char": "numpy.uint8",
    "short": "numpy.int16",
    "ushort": "numpy.uint16",
    "unsigned short": "numpy.uint16",
    "int": "numpy.int32",
    "uint": "numpy.uint32",
    "unsigned int": "numpy.uint32",
    "long": "numpy.int64",
    "ulong": "numpy.uint64",
    "unsigned long": "numpy.uint64",
    "float": "numpy.float32",
    "size_t": "numpy.intp",
    "image2d_t": HANDLE_TYPE,
    "image3d_t": HANDLE_TYPE,
    "sampler_t": HANDLE_TYPE,
}

VECTOR_TYPES = (
    "char",
    "uchar",
    "short",
    "ushort",
    "int",
    "uint",
    "long",
    "ulong",
    "float",
    "double",
)

VECTOR_WIDTHS = (2, 3, 4, 8, 16)

# numeric names passed through unchanged by translate_type, with their dtypes
NUMERIC_TYPES = {
    "double": "numpy.float64",
    "half": "numpy.float16",
}


def translate_type(dialect_type: str, vector_width: int) -> str:
    """
    Return the Python type name for an OpenCL type and vector width.

    Scalars are looked up in `SCALAR_TYPES`; numeric vectors map to the
    `pyopencl.cltypes` name, e.g. `float4`. Anything else is returned
    unchanged, leaving its resolution to the generated module.
    """
    if vector_width == 0:
        return SCALAR_TYPES.get(dialect_type, dialect_type)
    if dialect_type in VECTOR_TYPES:
        return f"{dialect_type}{vector_width}"
    return dialect_type


def is_vector_type(host_type):
    """
    True if the host type is one of the `pyopencl.cltypes` vector types.
    """
    for base in VECTOR_TYPES:
        width = host_type[len(base) :]
        if host_type.startswith(base) and width in map(str, VECTOR_WIDTHS):
            return True
    return False


def dtype_expression(host_type):
    """
    Return a Python expression for the numpy dtype of a host type, or `None`.

    The expression is evaluated in the namespace of a generated module. The
    numeric pass-through names `double` and `half` get their numpy dtypes.
    Other types with no known dtype (handles and unresolved names) yield
    `"None"`, which makes the runtime bind the value's own bytes.
    """
    if host_type == HANDLE_TYPE:
        return "None"
    if host_type in NUMERIC_TYPES:
        return NUMERIC_TYPES[host_type]
    if host_type in SCALAR_TYPES.values() or is_vector_type(host_type):
        return host_type
    return "None"
