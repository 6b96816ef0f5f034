from clwrap.kernel.descriptor import Qualifier, build_descriptor, build_descriptors
from clwrap.kernel.parse_api import match_kernel
from clwrap.kernel.typemap import HANDLE_TYPE


def descriptor(line):
    return build_descriptor(match_kernel(line))


def test_positions_follow_declaration_order():
    d = descriptor("kernel void k(global int* a, local float* b, int c, float4 d)")
    assert [arg.position for arg in d.args] == [0, 1, 2, 3]
    assert d.parameter_names == ["a", "b_length", "c", "d"]


def test_global_argument():
    (arg,) = descriptor("kernel void k(__global const int* data)").args
    assert arg.qualifier is Qualifier.GLOBAL
    assert arg.pointer
    assert arg.host_type == "numpy.int32"
    assert arg.parameter_type == "Buffer[numpy.int32]"


def test_local_argument():
    (arg,) = descriptor("kernel void k(__local float* scratch)").args
    assert arg.qualifier is Qualifier.LOCAL
    assert arg.parameter_name == "scratch_length"
    assert arg.parameter_type == "int"
    assert arg.host_type == "numpy.float32"


def test_value_arguments():
    d = descriptor("kernel void k(float4 offset, read_only image2d_t img, int n)")
    offset, img, n = d.args
    assert offset.qualifier is Qualifier.BY_VALUE
    assert (offset.dialect_type, offset.vector_width) == ("float", 4)
    assert offset.parameter_type == "float4"
    assert img.qualifier is Qualifier.BY_VALUE
    assert img.parameter_type == HANDLE_TYPE
    assert n.parameter_type == "numpy.int32"


def test_build_descriptors_keeps_order():
    sigs = [match_kernel(f"kernel void k{n}(int a)") for n in range(3)]
    assert [d.name for d in build_descriptors(sigs)] == ["k0", "k1", "k2"]
