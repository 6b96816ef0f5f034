"""
Structured per-kernel, per-argument model built from parsed signatures.

The position of each argument in `KernelDescriptor.args` is the index it is
bound to when the kernel is launched; it is never reordered.
"""

from enum import Enum
from typing import NamedTuple, Tuple

from .parse_api import KernelSignature, Parameter
from .typemap import translate_type


class Qualifier(Enum):
    GLOBAL = "global"
    LOCAL = "local"
    BY_VALUE = "value"


QUALIFIER_TOKENS = {
    "global": Qualifier.GLOBAL,
    "local": Qualifier.LOCAL,
    "read_only": Qualifier.BY_VALUE,
    "write_only": Qualifier.BY_VALUE,
    "": Qualifier.BY_VALUE,
}


class ArgumentDescriptor(NamedTuple):
    position: int
    identifier: str
    dialect_type: str
    vector_width: int
    pointer: bool
    qualifier: Qualifier
    host_type: str

    @property
    def parameter_name(self):
        """
        Name of the generated method parameter.
        """
        if self.qualifier is Qualifier.LOCAL:
            return f"{self.identifier}_length"
        return self.identifier

    @property
    def parameter_type(self):
        """
        Type annotation of the generated method parameter.
        """
        if self.qualifier is Qualifier.GLOBAL:
            return f"Buffer[{self.host_type}]"
        if self.qualifier is Qualifier.LOCAL:
            return "int"
        return self.host_type


class KernelDescriptor(NamedTuple):
    name: str
    args: Tuple[ArgumentDescriptor, ...]

    @property
    def parameter_names(self):
        return [arg.parameter_name for arg in self.args]


def build_argument(position: int, param: Parameter) -> ArgumentDescriptor:
    return ArgumentDescriptor(
        position=position,
        identifier=param.identifier,
        dialect_type=param.datatype,
        vector_width=param.vector_width,
        pointer=param.pointer,
        qualifier=QUALIFIER_TOKENS[param.qualifier],
        host_type=translate_type(param.datatype, param.vector_width),
    )


def build_descriptor(signature: KernelSignature) -> KernelDescriptor:
    """
    Classify each parameter of a kernel signature, in declaration order.
    """
    return KernelDescriptor(
        name=signature.name,
        args=tuple(build_argument(n, p) for n, p in enumerate(signature.params)),
    )


def build_descriptors(signatures):
    return [build_descriptor(signature) for signature in signatures]
