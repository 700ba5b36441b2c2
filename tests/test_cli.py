import json

import pytest

from witffi.cli import create_parser, main


@pytest.fixture
def wit_file(write_wit, eip681_wit):
    return write_wit(eip681_wit)


def test_generate_writes_both_files(wit_file, tmp_path, capsys):
    out = tmp_path / "out"

    code = main(["generate", "--wit", str(wit_file), "--output", str(out)])

    assert code == 0
    header = (out / "ffi.h").read_text()
    assert "FfiTransactionRequest *witffi_parser_parse(FfiByteSlice input);" in header
    assert "pub trait Eip681 {" in (out / "ffi.rs").read_text()
    assert "Wrote" in capsys.readouterr().out


def test_generate_with_prefixes(wit_file, tmp_path):
    out = tmp_path / "out"

    code = main([
        "generate", "--wit", str(wit_file), "--lang", "rs", "-o", str(out),
        "--c-prefix", "eip681", "--c-type-prefix", "Eip", "--no-comments",
    ])

    assert code == 0
    header = (out / "ffi.h").read_text()
    assert "EipTransactionRequest *eip681_parser_parse(EipByteSlice input);" in header
    assert "Parse a request URI." not in header


def test_generate_with_config_file(wit_file, tmp_path):
    config = tmp_path / "witffi.json"
    config.write_text(json.dumps({"symbol_prefix": "fromfile", "type_prefix": "Eip"}))
    out = tmp_path / "out"

    code = main(["generate", "--wit", str(wit_file), "-o", str(out), "--config", str(config)])

    assert code == 0
    header = (out / "ffi.h").read_text()
    assert "EipTransactionRequest *fromfile_parser_parse(EipByteSlice input);" in header


def test_generate_from_directory(tmp_path):
    wit_dir = tmp_path / "wit"
    wit_dir.mkdir()
    (wit_dir / "types.wit").write_text("package demo:app;\ninterface types { enum mode { on, off } }\n")
    (wit_dir / "world.wit").write_text(
        "package demo:app;\n"
        "interface api { use types.{mode}; get: func() -> mode; }\n"
        "world app { export api; }\n"
    )
    out = tmp_path / "out"

    assert main(["generate", "--wit", str(wit_dir), "-o", str(out)]) == 0
    assert "FfiMode witffi_api_get(void);" in (out / "ffi.h").read_text()


def test_verbose_prints_metadata_and_warnings(write_wit, tmp_path, capsys):
    wit = write_wit(
        """
        interface api {
            record marker {}
            make: func() -> marker;
        }
        world w { export api; }
        """
    )

    code = main(["generate", "--wit", str(wit), "-o", str(tmp_path / "out"), "--verbose"])

    output = capsys.readouterr().out
    assert code == 0
    assert "Generation Metadata" in output
    assert "Warnings" in output


def test_load_failure(write_wit, tmp_path, capsys):
    wit = write_wit("interface api {\n  get: func() -> missing;\n}\nworld w { export api; }\n")
    out = tmp_path / "out"

    code = main(["generate", "--wit", str(wit), "-o", str(out)])

    assert code == 1
    assert "load failed" in capsys.readouterr().out
    assert not out.exists()


def test_missing_wit_path(tmp_path, capsys):
    code = main(["generate", "--wit", str(tmp_path / "absent.wit"), "-o", str(tmp_path / "out")])

    assert code == 1
    assert "load failed" in capsys.readouterr().out


def test_classify_failure(write_wit, tmp_path, capsys):
    wit = write_wit(
        """
        interface api {
            pair: func() -> tuple<u8, u8>;
        }
        world w { export api; }
        """
    )
    out = tmp_path / "out"

    code = main(["generate", "--wit", str(wit), "-o", str(out)])

    assert code == 1
    assert "classify failed" in capsys.readouterr().out
    assert not out.exists()


def test_unknown_language(wit_file, tmp_path, capsys):
    code = main(["generate", "--wit", str(wit_file), "--lang", "cobol", "-o", str(tmp_path)])

    assert code == 1
    assert "config failed" in capsys.readouterr().out


def test_invalid_prefix(wit_file, tmp_path, capsys):
    code = main(["generate", "--wit", str(wit_file), "-o", str(tmp_path), "--c-prefix", "bad-prefix"])

    assert code == 1
    assert "config failed" in capsys.readouterr().out


def test_write_failure(wit_file, tmp_path, capsys):
    blocker = tmp_path / "out"
    blocker.write_text("not a directory")

    code = main(["generate", "--wit", str(wit_file), "-o", str(blocker)])

    assert code == 1
    assert "write failed" in capsys.readouterr().out


def test_languages_list(capsys):
    assert main(["languages"]) == 0

    output = capsys.readouterr().out
    assert "rust" in output
    assert "RustGenerator" in output


def test_language_details(capsys):
    assert main(["languages", "rs"]) == 0

    output = capsys.readouterr().out
    assert "Symbol Prefix" in output
    assert "witffi" in output


def test_unsupported_language_details(capsys):
    assert main(["languages", "go"]) == 1
    assert "not supported" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage: witffi" in capsys.readouterr().out


def test_generate_requires_wit_and_output():
    parser = create_parser()

    with pytest.raises(SystemExit):
        parser.parse_args(["generate", "--wit", "world.wit"])
