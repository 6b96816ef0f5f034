import pytest

from clwrap.main import argument_parser, main


ADD = "__kernel void add(__global float* a, int n) {}\n"


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "add.cl").write_text(ADD)
    return tmp_path


def test_argument_parser_config_keys():
    args = argument_parser().parse_args(
        ["generate", "add.cl", "--strict", "-o", "out", "--no-header"]
    )
    assert vars(args)["codegen.strict"] is True
    assert vars(args)["codegen.header"] is False
    assert vars(args)["build.output_directory"] == "out"
    assert vars(args)["build.suffix"] is None
    assert args._sources == ["add.cl"]


def test_generate(workdir):
    assert main(["generate", "add.cl", "-o", "out"]) is None
    assert (workdir / "out" / "add_kernels.py").exists()


def test_generate_source_with_link(workdir):
    assert main(["generate", "add.cl=cl/add.cl", "--copy-to-output", "-o", "out"]) is None
    assert (workdir / "out" / "cl" / "add.cl").read_text() == ADD
    assert "application_path('cl/add.cl')" in (workdir / "out" / "add_kernels.py").read_text()


def test_generate_user_config_and_overrides(workdir):
    (workdir / ".clwrap").write_text("[build]\nsuffix = _cl.py\n")

    main(["generate", "add.cl"])
    assert (workdir / "add_cl.py").exists()

    main(["generate", "add.cl", "--suffix", "_wrap.py"])
    assert (workdir / "add_wrap.py").exists()


def test_generate_strict_failure(workdir):
    (workdir / "broken.cl").write_text("__kernel void broken(int) {}\n")
    assert main(["generate", "broken.cl", "--strict"]) == 1
    assert not (workdir / "broken_kernels.py").exists()


def test_generate_bad_config(workdir):
    (workdir / ".clwrap").write_text("[codegen]\nstrict = sometimes\n")
    assert main(["generate", "add.cl"]) == 1


def test_generate_missing_file(workdir):
    assert main(["generate", "missing.cl"]) == 1


def test_parse(workdir, capsys):
    main(["parse", "add.cl"])
    out = capsys.readouterr().out
    assert "add" in out
    assert "Buffer[numpy.float32]" in out
    assert "numpy.int32" in out


def test_doc(workdir, capsys):
    main(["doc", "config"])
    out = capsys.readouterr().out
    assert "runtime_module" in out
    assert "copy_to_output" in out
