import sys

from cfg_attrs import readme
from cfg_attrs.readme import HEADER, NOTE, NOTICE, fence_indentation, promote_heading, render_readme


def rendered(body: str) -> str:
    return render_readme(f"{NOTICE}\n\n{body}")


def expected(body: str) -> str:
    return f"{NOTICE}\n\n{NOTE}\n\n{HEADER}\n{body}"


def test_headings_are_promoted():
    assert promote_heading("# Title") == "## Title"
    assert promote_heading("###### Deep") == "####### Deep"
    assert promote_heading("#hashtag") == "#hashtag"
    assert promote_heading("####### too deep") == "####### too deep"


def test_fence_indentation():
    assert fence_indentation("```") == 0
    assert fence_indentation("   ```") == 3
    assert fence_indentation("    ```") is None


def test_hidden_lines_in_code_blocks():
    body = (
        "Intro text.\n"
        "# Examples\n"
        "```\n"
        "/// Docs.\n"
        "# use cfg_attrs::cfg_attrs;\n"
        "#\n"
        "## not hidden\n"
        "fn main() {}\n"
        "```\n"
        "#hashtag\n"
    )
    assert rendered(body) == expected(
        "Intro text.\n"
        "## Examples\n"
        "```rust\n"
        "/// Docs.\n"
        "# not hidden\n"
        "fn main() {}\n"
        "```\n"
        "#hashtag\n"
    )


def test_info_string_and_indented_fences():
    body = "````text\n# hidden setup\nplain\n````\n  ```\n  # hidden\n  code\n\n  ```\n"
    assert rendered(body) == expected("````text\nplain\n````\n  ```rust\n  code\n\n  ```\n")


def test_dedented_line_ends_a_block():
    body = "  ```\n  a\nb\n"
    assert rendered(body) == expected("  ```rust\n  a\n  ```\nb\n")


def test_unclosed_block_is_flushed():
    assert rendered("```\ncode") == expected("```rust\ncode\n```\n")


def test_cli_writes_and_checks(tmp_path, monkeypatch, capsys):
    docs = tmp_path / "docs.md"
    docs.write_text(f"{NOTICE}\n\n# Usage\n", encoding="utf-8")
    out = tmp_path / "README.md"

    monkeypatch.setattr(sys, "argv", ["cfg-attrs-readme", "--input", str(docs), "--out", str(out), "--check"])
    assert readme.main() == 2
    assert "[DIFF]" in capsys.readouterr().err

    monkeypatch.setattr(sys, "argv", ["cfg-attrs-readme", "--input", str(docs), "--out", str(out)])
    assert readme.main() == 0
    assert out.read_text(encoding="utf-8") == expected("## Usage\n")

    monkeypatch.setattr(sys, "argv", ["cfg-attrs-readme", "--input", str(docs), "--out", str(out), "--check"])
    assert readme.main() == 0
