import pytest

from witffi.codegen.core.templates import TemplateEngine, TemplateError


@pytest.fixture
def template_dir(tmp_path):
    (tmp_path / "doc.j2").write_text('{{ text | comment("///") | indent }}\n')
    (tmp_path / "strict.j2").write_text("{{ missing }}\n")
    return tmp_path


def test_comment_and_indent_filters(template_dir):
    engine = TemplateEngine(template_dir)

    rendered = engine.render_template("doc.j2", {"text": "one\n\ntwo"})

    assert rendered == "    /// one\n    ///\n    /// two\n"


def test_undefined_variables_fail(template_dir):
    engine = TemplateEngine(template_dir)

    with pytest.raises(TemplateError) as excinfo:
        engine.render_template("strict.j2", {})

    assert excinfo.value.stage == "generate"
    assert "strict.j2" in str(excinfo.value)


def test_missing_template(template_dir):
    with pytest.raises(TemplateError, match="nowhere.j2"):
        TemplateEngine(template_dir).render_template("nowhere.j2", {})


def test_engine_without_directory_finds_nothing():
    with pytest.raises(TemplateError):
        TemplateEngine().render_template("ffi.h.j2", {})
