"""
Tests for spec_bindgen/generator.py and the gen_bindings.py entry point

Validates:
- every backend's file is written, and nothing is written when any stage fails
- a failed write leaves earlier outputs untouched
- the formatter runs over generated C++ only
- the command line reports errors and exits non-zero
"""

import subprocess

import pytest
import yaml

import gen_bindings
from spec_bindgen import generator
from spec_bindgen.errors import BindgenError
from spec_bindgen.generator import Generator, GeneratorConfig


def write_spec(path, doc):
    path.write_text(yaml.safe_dump(doc, sort_keys=False))
    return path


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


def test_generate_writes_every_backend(tmp_path, sample_spec_file, capsys):
    out_dir = tmp_path / 'out'
    written = Generator(GeneratorConfig([str(sample_spec_file)], output_dir=str(out_dir))).generate()

    assert sorted(p.rsplit('/', 1)[-1] for p in written) == ['bindings.cpp', 'bindings.lua']
    assert 'luaopen_bindings' in (out_dir / 'bindings.cpp').read_text()
    assert (out_dir / 'bindings.lua').read_text().startswith('---@meta')

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == '=== Generating bindings:'
    assert lines[1] == f'  {sample_spec_file} => {out_dir / "bindings.cpp"}'


def test_single_backend(tmp_path, sample_spec_file):
    out_dir = tmp_path / 'out'
    config = GeneratorConfig([str(sample_spec_file)], output_dir=str(out_dir), backends=['luacats'],
                             module_name='zoo')
    Generator(config).generate()
    assert [p.name for p in out_dir.iterdir()] == ['zoo.lua']


def test_bind_failure_writes_nothing(tmp_path, sample_doc):
    sample_doc['classes']['Dog']['base'] = 'Wolf'
    spec_file = write_spec(tmp_path / 'bad.yml', sample_doc)
    out_dir = tmp_path / 'out'

    with pytest.raises(BindgenError) as exc:
        Generator(GeneratorConfig([str(spec_file)], output_dir=str(out_dir))).generate()
    assert 'Wolf' in str(exc.value)
    assert not out_dir.exists()


def test_render_failure_writes_nothing(tmp_path, sample_doc):
    # Shared classes may only be returned inside their handle
    sample_doc['classes']['Kennel']['methods']['itself'] = '() -> Kennel'
    spec_file = write_spec(tmp_path / 'bad.yml', sample_doc)
    out_dir = tmp_path / 'out'

    with pytest.raises(BindgenError):
        Generator(GeneratorConfig([str(spec_file)], output_dir=str(out_dir))).generate()
    assert not out_dir.exists()


def test_write_failure_replaces_nothing(tmp_path, sample_spec_file, monkeypatch):
    out_dir = tmp_path / 'out'
    out_dir.mkdir()
    (out_dir / 'bindings.cpp').write_text('old')

    def fail_on_lua(path, *args, **kwargs):
        if path.endswith('bindings.lua.tmp'):
            raise OSError('disk full')
        return open(path, *args, **kwargs)

    monkeypatch.setattr(generator, 'open', fail_on_lua, raising=False)
    with pytest.raises(OSError):
        Generator(GeneratorConfig([str(sample_spec_file)], output_dir=str(out_dir))).generate()
    assert [p.name for p in out_dir.iterdir()] == ['bindings.cpp']
    assert (out_dir / 'bindings.cpp').read_text() == 'old'


def test_unknown_backend(sample_spec_file):
    gen = Generator(GeneratorConfig([str(sample_spec_file)], backends=['python']))
    with pytest.raises(BindgenError) as exc:
        gen.render(gen.bind())
    assert "unknown backend 'python'" in str(exc.value)


def test_no_spec_files():
    with pytest.raises(BindgenError):
        Generator(GeneratorConfig([])).bind()


def test_dump_model(sample_spec_file):
    dumped = yaml.safe_load(Generator(GeneratorConfig([str(sample_spec_file)])).dump_model())
    assert [c['name'] for c in dumped['classes']] == ['Dog', 'Puppy', 'Kennel', 'Listener']
    assert dumped['headers'] == ['zoo/animals.hpp']


def test_output_is_deterministic(sample_spec_file):
    gen = Generator(GeneratorConfig([str(sample_spec_file)]))
    assert gen.render(gen.bind()) == gen.render(gen.bind())


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------


def test_formatter_runs_over_cpp_output(tmp_path, sample_spec_file, monkeypatch):
    calls = []
    monkeypatch.setattr(subprocess, 'run', lambda cmd, check: calls.append(cmd))
    out_dir = tmp_path / 'out'

    config = GeneratorConfig([str(sample_spec_file)], output_dir=str(out_dir), formatter='clang-format -i')
    Generator(config).generate()
    assert calls == [['clang-format', '-i', str(out_dir / 'bindings.cpp')]]


def test_formatter_skipped_without_cpp_output(tmp_path, sample_spec_file, monkeypatch):
    calls = []
    monkeypatch.setattr(subprocess, 'run', lambda cmd, check: calls.append(cmd))

    config = GeneratorConfig([str(sample_spec_file)], output_dir=str(tmp_path), backends=['luacats'],
                             formatter='clang-format -i')
    Generator(config).generate()
    assert calls == []


def test_formatter_failure(tmp_path, sample_spec_file, monkeypatch):
    def fail(cmd, check):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(subprocess, 'run', fail)
    config = GeneratorConfig([str(sample_spec_file)], output_dir=str(tmp_path), formatter='clang-format -i')
    with pytest.raises(BindgenError) as exc:
        Generator(config).generate()
    assert 'formatter failed' in str(exc.value)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


def test_main_generates(tmp_path, sample_spec_file):
    out_dir = tmp_path / 'out'
    assert gen_bindings.main(['--spec', str(sample_spec_file), '--output', str(out_dir)]) == 0
    assert (out_dir / 'bindings.cpp').exists()


def test_main_module_and_backend(tmp_path, sample_spec_file):
    out_dir = tmp_path / 'out'
    argv = ['--spec', str(sample_spec_file), '--output', str(out_dir), '--module', 'zoo', '--backend', 'lua']
    assert gen_bindings.main(argv) == 0
    assert [p.name for p in out_dir.iterdir()] == ['zoo.cpp']


def test_main_reports_errors(tmp_path, capsys):
    spec_file = write_spec(tmp_path / 'bad.yml', {'typeAliases': {'A': 'std::vector<int'}})
    assert gen_bindings.main(['--spec', str(spec_file), '--output', str(tmp_path / 'out')]) == 1
    err = capsys.readouterr().err
    assert err.startswith('ERROR typeAliases.A:')
    assert 'AT END' in err


def test_main_missing_file(tmp_path, capsys):
    assert gen_bindings.main(['--spec', str(tmp_path / 'missing.yml')]) == 1
    assert capsys.readouterr().err.startswith('ERROR ')


def test_main_dump_model(sample_spec_file, capsys):
    assert gen_bindings.main(['--spec', str(sample_spec_file), '--dump-model']) == 0
    out = capsys.readouterr().out
    assert 'name: Puppy' in out
    assert 'name: Listener' in out
