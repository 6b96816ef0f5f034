import pytest

from clwrap.build import (
    SourceUnit,
    generate,
    output_module_path,
    process_kernel_file,
    split_source,
)
from clwrap.config import Build, Clwrap, Codegen
from clwrap.kernel.parse_api import KernelSyntaxError


ADD = "__kernel void add(__global float* a, __global float* b) {}\n"


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "add.cl"
    path.write_text(ADD)
    return path


def test_load_embeds_by_default(source, tmp_path):
    unit = SourceUnit.load(source, root=tmp_path)
    assert unit.embed_source
    assert unit.text == ADD
    assert unit.output_path == "add.cl"
    assert unit.path == str(source)


def test_load_copied_with_link(source):
    unit = SourceUnit.load(source, copy_to_output=True, link="kernels/add.cl")
    assert not unit.embed_source
    assert unit.output_path == "kernels/add.cl"


def test_output_path_relative_to_working_directory(source, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path.parent)
    unit = SourceUnit.load(source)
    assert unit.output_path == f"{tmp_path.name}/add.cl"


def test_output_module_path(tmp_path):
    assert output_module_path("/src/add.cl") == "/src/add_kernels.py"
    build = Build(output_directory=str(tmp_path), suffix="_cl.py")
    assert output_module_path("/src/add.cl", build) == str(tmp_path / "add_cl.py")


def test_process_kernel_file_embed_and_reference(source, tmp_path):
    embedded = process_kernel_file(SourceUnit.load(source, root=tmp_path))
    referenced = process_kernel_file(
        SourceUnit.load(source, copy_to_output=True, root=tmp_path)
    )
    assert "KERNEL_SOURCE = " in embedded
    assert "KERNEL_SOURCE" not in referenced
    assert "application_path('add.cl')" in referenced


def test_generate_writes_one_module_per_file(source, tmp_path):
    empty = tmp_path / "helpers.cl"
    empty.write_text("float helper(float a) { return a; }\n")
    out = tmp_path / "out"
    config = Clwrap(build=Build(output_directory=str(out)))

    outputs = generate([source, empty], config)

    assert outputs == [str(out / "add_kernels.py"), str(out / "helpers_kernels.py")]
    code = (out / "add_kernels.py").read_text()
    compile(code, "add_kernels.py", "exec")
    assert "class add(KernelWrapperBase)" in code
    assert "class " not in (out / "helpers_kernels.py").read_text()


def test_generate_copies_kernel_sources(source, tmp_path):
    out = tmp_path / "out"
    config = Clwrap(
        build=Build(copy_to_output=True, root=str(tmp_path), output_directory=str(out))
    )
    generate([source], config)
    assert (out / "add.cl").read_text() == ADD
    assert "KERNEL_SOURCE" not in (out / "add_kernels.py").read_text()


def test_generate_strict(tmp_path):
    path = tmp_path / "broken.cl"
    path.write_text("__kernel void broken(__global float*) {}\n")
    config = Clwrap(codegen=Codegen(strict=True))

    with pytest.raises(KernelSyntaxError):
        generate([path], config)

    assert generate([path]) == [str(tmp_path / "broken_kernels.py")]


def test_split_source(source):
    assert split_source("add.cl=kernels/add.cl") == ("add.cl", "kernels/add.cl")
    assert split_source("add.cl") == ("add.cl", None)
    assert split_source("add.cl=") == ("add.cl", None)
    assert split_source(source) == (source, None)


def test_generate_with_link(source, tmp_path):
    out = tmp_path / "out"
    config = Clwrap(
        build=Build(copy_to_output=True, root=str(tmp_path), output_directory=str(out))
    )
    outputs = generate([f"{source}=kernels/vector_add.cl"], config)

    assert outputs == [str(out / "add_kernels.py")]
    assert (out / "kernels" / "vector_add.cl").read_text() == ADD
    assert not (out / "add.cl").exists()
    assert "application_path('kernels/vector_add.cl')" in (out / "add_kernels.py").read_text()
