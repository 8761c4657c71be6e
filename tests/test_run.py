import json
import sys

from cfg_attrs import run

SOURCE = '#[cfg_attrs(feature = "x", #[doc = "a"])]\nfn f() {}\n'
EXPECTED = '#[cfg_attr(feature = "x", doc = "a")]\nfn f() {}\n'


def invoke(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["cfg-attrs", *argv])
    return run.main()


def test_single_file_to_stdout(tmp_path, monkeypatch, capsys):
    path = tmp_path / "lib.rs"
    path.write_text(SOURCE, encoding="utf-8")
    assert invoke(monkeypatch, "--input", str(path)) == 0
    assert capsys.readouterr().out == EXPECTED


def test_directory_to_out(tmp_path, monkeypatch):
    src = tmp_path / "src"
    (src / "nested").mkdir(parents=True)
    (src / "lib.rs").write_text(SOURCE, encoding="utf-8")
    (src / "nested" / "mod.rs").write_text("struct S;\n", encoding="utf-8")
    (src / "notes.txt").write_text("ignored", encoding="utf-8")
    out = tmp_path / "out"

    assert invoke(monkeypatch, "--input", str(src), "--out", str(out)) == 0
    assert (out / "lib.rs").read_text(encoding="utf-8") == EXPECTED
    assert (out / "nested" / "mod.rs").read_text(encoding="utf-8") == "struct S;\n"
    assert not (out / "notes.txt").exists()


def test_directory_requires_out(tmp_path, monkeypatch, capsys):
    (tmp_path / "lib.rs").write_text(SOURCE, encoding="utf-8")
    assert invoke(monkeypatch, "--input", str(tmp_path)) == 2
    assert "E_OUTPUT_REQUIRED" in capsys.readouterr().err


def test_check_reports_changes(tmp_path, monkeypatch, capsys):
    changed = tmp_path / "a.rs"
    changed.write_text(SOURCE, encoding="utf-8")
    clean = tmp_path / "b.rs"
    clean.write_text(EXPECTED, encoding="utf-8")

    assert invoke(monkeypatch, "--input", str(tmp_path), "--check") == 2
    err = capsys.readouterr().err
    assert f"[DIFF] {changed}" in err
    assert str(clean) not in err
    assert changed.read_text(encoding="utf-8") == SOURCE

    assert invoke(monkeypatch, "--input", str(clean), "--check") == 0


def test_errors_are_reported_as_json(tmp_path, monkeypatch, capsys):
    path = tmp_path / "lib.rs"
    path.write_text("#[cfg_attrs]\nfn f() {}\n", encoding="utf-8")
    out = tmp_path / "out.rs"
    assert invoke(monkeypatch, "--input", str(path), "--out", str(out)) == 2
    err = capsys.readouterr().err
    payload = json.loads(err)
    assert payload[0]["code"] == "E_DIRECTIVE_ARGS_MALFORMED"
    assert payload[0]["file"] == str(path)
    assert out.read_text(encoding="utf-8").startswith("#[doc = ::core::compile_error!(")


def test_item_mode_rejects_arguments(tmp_path, monkeypatch, capsys):
    path = tmp_path / "item.rs"
    path.write_text(SOURCE, encoding="utf-8")
    assert invoke(monkeypatch, "--input", str(path), "--item", "--args", "extra") == 2
    assert capsys.readouterr().out.startswith("::core::compile_error! {")


def test_args_without_item(tmp_path, monkeypatch, capsys):
    path = tmp_path / "lib.rs"
    path.write_text(SOURCE, encoding="utf-8")
    assert invoke(monkeypatch, "--input", str(path), "--args", "x") == 2
    assert "E_ARGS_REQUIRES_ITEM" in capsys.readouterr().err


def test_config_and_missing_input(tmp_path, monkeypatch, capsys):
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"directive": {"name": "doc_if"}}), encoding="utf-8")
    path = tmp_path / "lib.rs"
    path.write_text("#[doc_if(x, #[a])]\nfn f() {}\n", encoding="utf-8")

    assert invoke(monkeypatch, "--input", str(path), "--config", str(config)) == 0
    assert capsys.readouterr().out == "#[cfg_attr(x, a)]\nfn f() {}\n"

    assert invoke(monkeypatch, "--input", str(tmp_path / "missing.rs")) == 2
    assert "E_INPUT_NOT_FOUND" in capsys.readouterr().err


def test_refuses_symlinked_output(tmp_path, monkeypatch, capsys):
    path = tmp_path / "lib.rs"
    path.write_text(SOURCE, encoding="utf-8")
    real = tmp_path / "real.rs"
    real.write_text("", encoding="utf-8")
    link = tmp_path / "link.rs"
    link.symlink_to(real)

    assert invoke(monkeypatch, "--input", str(path), "--out", str(link)) == 2
    assert "E_OUTPUT_SYMLINK" in capsys.readouterr().err
    assert real.read_text(encoding="utf-8") == ""
