from pathlib import Path

import pytest

from antigen.index import (
    WitnessKind,
    collect_function_index,
    extract_proptest_fn_names,
    index_source,
    macro_path_last_is,
)
from antigen.lexer import LexError, tokenize


def index_from_str(source):
    return index_source(source, "<test>.rs")


def test_proptest_inner_fns_are_classified_proptest():
    src = """
        proptest! {
            #[test]
            fn first_proptest(x in 0u32..100) {
                assert!(x < 100);
            }

            #[test]
            fn second_proptest(x in 0u32..100, y in 0u32..100) {
                assert!(x + y < 200);
            }
        }
    """
    idx = index_from_str(src)
    assert idx["first_proptest"][1] is WitnessKind.PROPTEST
    assert idx["second_proptest"][1] is WitnessKind.PROPTEST


def test_proptest_path_qualified_macro_is_recognized():
    src = """
        proptest::proptest! {
            #[test]
            fn qualified_form_proptest(x in 0u32..100) {
                assert!(x < 100);
            }
        }
    """
    idx = index_from_str(src)
    assert idx["qualified_form_proptest"][1] is WitnessKind.PROPTEST


def test_test_function_outside_proptest_is_classified_test():
    src = """
        // Doc-style comment mentioning proptest! for explanation purposes.
        #[test]
        fn plain_test() {
            assert_eq!(2 + 2, 4);
        }

        proptest! {
            #[test]
            fn proptest_one(x in 0u32..10) {
                assert!(x < 10);
            }
        }
    """
    idx = index_from_str(src)
    assert idx["plain_test"][1] is WitnessKind.TEST
    assert idx["proptest_one"][1] is WitnessKind.PROPTEST


def test_doc_comment_mentioning_proptest_does_not_over_classify():
    src = """
        /// This function has nothing to do with proptest! — the macro
        /// is named here only for documentation.
        #[test]
        fn doc_comment_only_test() {
            assert!(true);
        }
    """
    idx = index_from_str(src)
    assert idx["doc_comment_only_test"][1] is WitnessKind.TEST


def test_plain_function_is_classified_function():
    idx = index_from_str("fn no_attribute_function() {}")
    assert idx["no_attribute_function"] == (Path("<test>.rs"), WitnessKind.FUNCTION)


def test_extract_proptest_fn_names_skips_nested():
    tokens = tokenize(
        """
        #[test]
        fn outer(x in 0u32..10) {
            fn nested_helper() {}
            assert!(x < 10);
        }
        """
    )
    assert extract_proptest_fn_names(tokens) == ["outer"]


def test_extract_proptest_fn_names_accepts_text():
    assert extract_proptest_fn_names("fn a() {} fn b() {}") == ["a", "b"]


def test_macro_path_last_is_handles_qualified_paths():
    assert macro_path_last_is("proptest", "proptest")
    assert macro_path_last_is("proptest::proptest", "proptest")
    assert not macro_path_last_is("other_crate::other_macro", "proptest")


def test_methods_and_nested_functions_are_indexed():
    src = """
        struct S;
        impl S {
            #[test]
            fn method_test() {}
            fn method() {
                fn nested() {}
            }
        }
    """
    idx = index_from_str(src)
    assert idx["method_test"][1] is WitnessKind.TEST
    assert idx["method"][1] is WitnessKind.FUNCTION
    assert idx["nested"][1] is WitnessKind.FUNCTION


def test_trait_method_declarations_are_not_indexed():
    src = """
        trait T {
            fn required(&self);
            fn provided(&self) {
                fn helper() {}
            }
        }
    """
    idx = index_from_str(src)
    assert "required" not in idx
    assert "provided" not in idx
    assert idx["helper"][1] is WitnessKind.FUNCTION


def test_first_definition_wins():
    src = """
        fn dup() {}
        struct X;
        impl X {
            #[test]
            fn dup() {}
        }
    """
    assert index_from_str(src)["dup"][1] is WitnessKind.FUNCTION


def test_other_macro_bodies_are_opaque():
    src = """
        macro_rules! make {
            () => { fn hidden() {} };
        }
        fn visible() { other! { fn also_hidden() {} } }
    """
    idx = index_from_str(src)
    assert set(idx) == {"visible"}


def test_attribute_does_not_leak_past_item():
    src = """
        #[test]
        struct Marker;
        fn after() {}
    """
    assert index_from_str(src)["after"][1] is WitnessKind.FUNCTION


def test_index_source_raises_on_unlexable_text():
    with pytest.raises(LexError):
        index_source("fn broken( {", "bad.rs")


def test_collect_function_index_walks_tree(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "lib.rs").write_text("#[test]\nfn in_lib() {}\n", encoding="utf-8")
    (tmp_path / "target").mkdir()
    (tmp_path / "target" / "gen.rs").write_text("fn in_target() {}\n", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("fn in_text() {}\n", encoding="utf-8")
    (tmp_path / "broken.rs").write_text("fn in_broken( {\n", encoding="utf-8")

    idx = collect_function_index(tmp_path)
    assert idx == {"in_lib": (tmp_path / "src" / "lib.rs", WitnessKind.TEST)}


def test_collect_function_index_first_file_wins(tmp_path):
    (tmp_path / "a.rs").write_text("#[test]\nfn shared() {}\n", encoding="utf-8")
    (tmp_path / "b.rs").write_text("fn shared() {}\nfn only_b() {}\n", encoding="utf-8")

    idx = collect_function_index(tmp_path)
    assert idx["shared"] == (tmp_path / "a.rs", WitnessKind.TEST)
    assert idx["only_b"] == (tmp_path / "b.rs", WitnessKind.FUNCTION)


def test_collect_function_index_skips_non_utf8(tmp_path):
    (tmp_path / "bad.rs").write_bytes(b"fn x() {} \xff\xfe")
    (tmp_path / "good.rs").write_text("fn good() {}", encoding="utf-8")
    assert set(collect_function_index(tmp_path)) == {"good"}