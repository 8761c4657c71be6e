from cfg_attrs import Config, expand, transform_source

def test_single_directive_rewrites_to_native_form():
    result = expand('#[cfg_attrs(feature = "magic", #[sparkles] #[crackles])]\nfn bewitched() {}')
    assert result.text == '#[cfg_attr(feature = "magic", sparkles, crackles)]\nfn bewitched() {}'
    assert result.diagnostics == ()
    assert result.ok

def test_bare_metas_keep_their_order():
    result = expand('#[cfg_attrs(flag_x, doc("hello"), doc("world"))]\nfn f() { body() }')
    assert result.text == '#[cfg_attr(flag_x, doc("hello"), doc("world"))]\nfn f() { body() }'

def test_doc_comments_become_doc_metas():
    source = (
        "/// This is an example struct.\n"
        "#[cfg_attrs(\n"
        "    debug_assertions,\n"
        "    ///\n"
        "    /// Hello! These are docs that only appear when\n"
        "    /// debug assertions are active.\n"
        ")]\n"
        "struct Example;"
    )
    expected = (
        "/// This is an example struct.\n"
        '#[cfg_attr(debug_assertions, doc = "", doc = " Hello! These are docs that only appear when", '
        'doc = " debug assertions are active.")]\n'
        "struct Example;"
    )
    assert expand(source).text == expected

def test_braced_list():
    result = expand("#[cfg_attrs(unix, {\n    #[inline]\n    #[must_use]\n})]\nfn f() -> u8 { 0 }")
    assert result.text == "#[cfg_attr(unix, inline, must_use)]\nfn f() -> u8 { 0 }"

def test_empty_nested_list():
    assert expand("#[cfg_attrs(a,)]\nfn f() {}").text == "#[cfg_attr(a,)]\nfn f() {}"

def test_interleaved_annotations_keep_positions():
    result = expand("#[a]\n#[cfg_attrs(cond, #[b], #[c])]\n#[d]\nfn f() {}")
    assert result.text == "#[a]\n#[cfg_attr(cond, b, c)]\n#[d]\nfn f() {}"

def test_nested_directive_is_deferred_then_resolves():
    result = expand('#[cfg_attrs(a, #[doc = "x"], #[cfg_attrs(b, #[doc = "y"])])]\nfn f() {}')
    assert result.text == '#[cfg_attr(a, doc = "x", cfg_attrs(b, #[doc = "y"]))]\nfn f() {}'

    # What the host leaves on the item once `a` holds.
    again = expand('#[doc = "x"]\n#[cfg_attrs(b, #[doc = "y"])]\nfn f() {}')
    assert again.text == '#[doc = "x"]\n#[cfg_attr(b, doc = "y")]\nfn f() {}'

def test_doubly_nested_directive_keeps_inner_directives():
    result = expand("#[cfg_attrs(a, #[cfg_attrs(b, #[cfg_attrs(c, #[x])], #[y])])]\nstruct S;")
    assert result.text == "#[cfg_attr(a, cfg_attrs(b, #[cfg_attrs(c, #[x])], #[y]))]\nstruct S;"

    step = expand("#[cfg_attrs(b, #[cfg_attrs(c, #[x])], #[y])]\nstruct S;")
    assert step.text == "#[cfg_attr(b, cfg_attrs(c, #[x]), y)]\nstruct S;"

def test_malformed_directive_is_isolated():
    result = expand("#[inline]\n#[cfg_attrs]\n#[cfg_attrs(a, #[b])]\nfn f() { body(); }")
    assert result.text == (
        "#[inline]\n"
        '#[doc = ::core::compile_error!("expected attribute arguments in parentheses: `cfg_attrs(...)`")]\n'
        "#[cfg_attr(a, b)]\n"
        "fn f() { body(); }"
    )
    assert len(result.diagnostics) == 1
    diag = result.diagnostics[0]
    assert diag.code == "E_DIRECTIVE_ARGS_MALFORMED"
    assert diag.path == "/item/annotations/1"
    assert (diag.line, diag.col) == (2, 1)
    assert not result.ok

def test_missing_separator_fails_only_its_directive():
    source = (
        "struct S {\n"
        "    #[cfg_attrs(f1)]\n"
        "    a: u8,\n"
        "    #[cfg_attrs(f2, #[serde(skip)])]\n"
        "    b: u16,\n"
        "}"
    )
    result = expand(source)
    assert result.text == (
        "struct S {\n"
        '    #[doc = ::core::compile_error!("expected `,` after the configuration predicate")]\n'
        "    a: u8,\n"
        "    #[cfg_attr(f2, serde(skip))]\n"
        "    b: u16,\n"
        "}"
    )
    assert [d.path for d in result.diagnostics] == ["/item/fields/0/annotations/0"]

def test_fields_rewrite_independently():
    source = (
        "#[cfg_attrs(top, #[derive(Debug)])]\n"
        "struct S {\n"
        '    #[cfg_attrs(f1, #[doc = "a"])]\n'
        "    a: T,\n"
        '    #[cfg_attrs(f2, #[doc = "b"])]\n'
        "    b: U,\n"
        "}"
    )
    assert expand(source).text == (
        "#[cfg_attr(top, derive(Debug))]\n"
        "struct S {\n"
        '    #[cfg_attr(f1, doc = "a")]\n'
        "    a: T,\n"
        '    #[cfg_attr(f2, doc = "b")]\n'
        "    b: U,\n"
        "}"
    )

def test_enum_variants_and_their_fields():
    source = (
        "enum E {\n"
        "    #[cfg_attrs(v, #[default])]\n"
        "    A,\n"
        "    B {\n"
        '        #[cfg_attrs(f, #[doc = "x"])]\n'
        "        x: u8,\n"
        "    },\n"
        '    C(#[cfg_attrs(t, #[doc = "y"])] u8),\n'
        "}"
    )
    assert expand(source).text == (
        "enum E {\n"
        "    #[cfg_attr(v, default)]\n"
        "    A,\n"
        "    B {\n"
        '        #[cfg_attr(f, doc = "x")]\n'
        "        x: u8,\n"
        "    },\n"
        '    C(#[cfg_attr(t, doc = "y")] u8),\n'
        "}"
    )

def test_trait_members():
    source = (
        "pub trait T {\n"
        '    #[cfg_attrs(a, #[doc = "x"])]\n'
        "    fn f(&self) -> u8;\n"
        "    #[cfg_attrs(b, #[inline])]\n"
        "    fn g(&self) {}\n"
        "    type Out;\n"
        "}"
    )
    assert expand(source).text == (
        "pub trait T {\n"
        '    #[cfg_attr(a, doc = "x")]\n'
        "    fn f(&self) -> u8;\n"
        "    #[cfg_attr(b, inline)]\n"
        "    fn g(&self) {}\n"
        "    type Out;\n"
        "}"
    )

def test_invocation_arguments_become_a_native_annotation():
    result = expand('#[inline]\nfn f() {}', args='b, #[doc = "y"]')
    assert result.text == '#[cfg_attr(b, doc = "y")]\n#[inline]\nfn f() {}'
    assert result.diagnostics == ()

def test_deferred_directive_resolves_through_invocation_arguments():
    first = expand("#[cfg_attrs(a, #[cfg_attrs(b, #[cfg_attrs(c, #[x])], #[y])])]\nstruct S;")
    assert first.text == "#[cfg_attr(a, cfg_attrs(b, #[cfg_attrs(c, #[x])], #[y]))]\nstruct S;"

    # The host hands the deferred directive's arguments back with the bare item.
    second = expand("struct S;", args="b, #[cfg_attrs(c, #[x])], #[y]")
    assert second.text == "#[cfg_attr(b, cfg_attrs(c, #[x]), y)]\nstruct S;"

    third = expand("struct S;", args="c, #[x]")
    assert third.text == "#[cfg_attr(c, x)]\nstruct S;"

def test_malformed_invocation_arguments_are_fatal():
    for args in ("x", ", #[b]"):
        result = expand("#[cfg_attrs(a, #[b])]\nfn f() {}", args=args)
        assert result.text == (
            '::core::compile_error! { "unexpected arguments: expected `predicate, attributes` after `cfg_attrs`" }'
        )
        assert [(d.code, d.path) for d in result.diagnostics] == [("E_INVOCATION_ARGUMENT_UNEXPECTED", "/args")]

    result = expand("fn f() {}", args="a, 42")
    assert [d.code for d in result.diagnostics] == ["E_DIRECTIVE_ANNOTATION_EXPECTED"]
    assert result.text.startswith("::core::compile_error! {")

def test_lexical_error_is_fatal():
    result = expand("fn f() {")
    assert result.text == '::core::compile_error! { "unclosed delimiter `{`" }'
    assert not result.ok

def test_unsupported_shape_passes_through_with_warning():
    source = "#[cfg_attrs(a, #[b])]\nimpl S {}"
    result = expand(source)
    assert result.text == source
    assert [(d.code, d.severity) for d in result.diagnostics] == [("W_DECLARATION_UNSUPPORTED", "warning")]
    assert result.ok

def test_trailing_tokens_pass_through():
    source = "#[cfg_attrs(a, #[b])]\nfn f() {}\nfn g() {}"
    result = expand(source)
    assert result.text == source
    assert [d.code for d in result.diagnostics] == ["W_DECLARATION_TRAILING_TOKENS"]

def test_warnings_can_be_disabled():
    result = expand("impl S {}", config=Config(warn_unsupported=False))
    assert result.text == "impl S {}"
    assert result.diagnostics == ()

def test_custom_names():
    config = Config(directive_name="doc_if", native_name="cfg_attr", error_macro="panic")
    result = expand("#[doc_if(x, #[a])]\n#[doc_if]\n#[cfg_attrs(y, #[b])]\nfn f() {}", config=config)
    assert result.text == (
        "#[cfg_attr(x, a)]\n"
        '#[doc = ::core::panic!("expected attribute arguments in parentheses: `doc_if(...)`")]\n'
        "#[cfg_attrs(y, #[b])]\n"
        "fn f() {}"
    )

def test_transform_source_rewrites_every_item():
    source = (
        "#![cfg_attrs(test, #[allow(dead_code)])]\n"
        "\n"
        "impl S {}\n"
        "\n"
        "#[cfg_attrs(a, #[b])]\n"
        "const X: u8 = 1;\n"
        "\n"
        "/// Tail comment.\n"
    )
    result = transform_source(source)
    assert result.text == (
        "#![cfg_attr(test, allow(dead_code))]\n"
        "\n"
        "impl S {}\n"
        "\n"
        "#[cfg_attr(a, b)]\n"
        "const X: u8 = 1;\n"
        "\n"
        "/// Tail comment.\n"
    )
    assert result.diagnostics == ()

def test_transform_source_warns_on_hidden_directives():
    source = "impl S {\n    #[cfg_attrs(a, #[b])]\n    fn f() {}\n}\n"
    result = transform_source(source)
    assert result.text == source
    assert [(d.code, d.path) for d in result.diagnostics] == [("W_DECLARATION_UNSUPPORTED", "/items/0")]

def test_bare_meta_ends_at_the_next_annotation():
    result = expand('#[cfg_attrs(c, doc = "a" #[b] inline /// d\n)]\nfn f() {}')
    assert result.text == '#[cfg_attr(c, doc = "a", b, inline, doc = " d")]\nfn f() {}'
    assert result.diagnostics == ()

def test_transform_source_keeps_a_shebang_line():
    source = "#!/usr/bin/env run-cargo-script\n#[cfg_attrs(a, #[b])]\nfn f() {}\n"
    result = transform_source(source)
    assert result.text == "#!/usr/bin/env run-cargo-script\n#[cfg_attr(a, b)]\nfn f() {}\n"
    assert result.diagnostics == ()
