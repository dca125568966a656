from pathlib import Path

import pytest

from antigen.audit import (
    AuditReport,
    Immunity,
    ImmunityAudit,
    StatusKind,
    WitnessStatus,
    audit,
    detect_external_tool,
    validate_witness,
)
from antigen.index import WitnessKind


def test_detect_clippy_external_tool():
    assert detect_external_tool("clippy::no_panic_in_drop") == "clippy"


def test_detect_kani_external_tool():
    assert detect_external_tool("kani::proof_drop_safety") == "kani"


def test_detect_no_tool_for_local_function():
    assert detect_external_tool("safe_type_drop_no_panic_test") is None


@pytest.mark.parametrize(
    ("witness", "tool"),
    [
        ("prusti::spec", "prusti"),
        ("creusot::proof", "creusot"),
        ("verus::lemma", "verus"),
        ("mutants::check", "cargo-mutants"),
        ("Clippy::Lint", "clippy"),
        ("my_clippy_check", "clippy"),
        ("drop_kani_proof", "kani"),
    ],
)
def test_detect_other_tools(witness, tool):
    assert detect_external_tool(witness) == tool


def test_validate_witness_strips_path_prefix():
    idx = {"my_test": (Path("src/lib.rs"), WitnessKind.TEST)}
    status = validate_witness("module::path::my_test", idx)
    assert status.kind is StatusKind.RESOLVED
    assert status.location == Path("src/lib.rs")
    assert status.witness_kind is WitnessKind.TEST


def test_validate_witness_strips_call_parens():
    idx = {"my_test": (Path("a.rs"), WitnessKind.FUNCTION)}
    assert validate_witness(" my_test() ", idx).kind is StatusKind.RESOLVED


def test_validate_witness_reports_missing_when_empty():
    assert validate_witness("", {}) == WitnessStatus.missing()
    assert validate_witness("   ", {}).kind is StatusKind.MISSING


def test_validate_witness_reports_not_found_for_unknown():
    status = validate_witness("nonexistent_test", {})
    assert status.kind is StatusKind.NOT_FOUND
    assert status.reason == (
        "no function named `nonexistent_test` found in any .rs file under the scan root"
    )


def test_validate_witness_external_beats_index():
    idx = {"lint": (Path("a.rs"), WitnessKind.FUNCTION)}
    assert validate_witness("clippy::lint", idx) == WitnessStatus.external("clippy")


def test_status_to_dict_shapes():
    assert WitnessStatus.missing().to_dict() == {"status": "missing"}
    assert WitnessStatus.external("kani").to_dict() == {
        "status": "external",
        "tool_hint": "kani",
    }
    assert WitnessStatus.not_found("gone").to_dict() == {
        "status": "not_found",
        "reason": "gone",
    }
    assert WitnessStatus.resolved(Path("x.rs"), WitnessKind.PROPTEST).to_dict() == {
        "status": "resolved",
        "location": "x.rs",
        "witness_kind": "proptest",
    }


def test_is_well_formed():
    imm = Immunity("X", "w")
    assert ImmunityAudit(imm, WitnessStatus.external("clippy")).is_well_formed()
    assert ImmunityAudit(
        imm, WitnessStatus.resolved(Path("a.rs"), WitnessKind.TEST)
    ).is_well_formed()
    assert not ImmunityAudit(imm, WitnessStatus.missing()).is_well_formed()
    assert not ImmunityAudit(imm, WitnessStatus.not_found("r")).is_well_formed()


def test_empty_report_is_valid():
    report = AuditReport()
    assert report.all_valid()
    assert report.problematic_audits() == []


SAFE_SOURCE = """
#[immune(PanickingInDrop, witness = safe_type_drop_no_panic_test)]
impl Drop for SafeType {
    fn drop(&mut self) {}
}

fn safe_type_drop_no_panic_test() {
    let s = SafeType { data: None };
    drop(s);
}

#[test]
fn real_test() { assert_eq!(2 + 2, 4); }

proptest! {
    #[test]
    fn prop_case(x in 0u32..10) { assert!(x < 10); }
}
"""


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "lib.rs").write_text(SAFE_SOURCE, encoding="utf-8")
    target = tmp_path / "target"
    target.mkdir()
    (target / "gen.rs").write_text("fn hidden_in_target() {}", encoding="utf-8")
    return tmp_path


def test_audit_against_workspace(workspace):
    immunities = [
        Immunity("PanickingInDrop", "safe_type_drop_no_panic_test"),
        Immunity("A", "crate::real_test"),
        Immunity("B", "prop_case"),
        Immunity("DemoBrokenWitness", "nonexistent_test"),
        Immunity("C", "clippy::no_panic"),
        Immunity("D", ""),
        Immunity("E", "hidden_in_target"),
    ]
    report = audit(immunities, workspace)

    kinds = [a.witness_status.kind for a in report.audits]
    assert kinds == [
        StatusKind.RESOLVED,
        StatusKind.RESOLVED,
        StatusKind.RESOLVED,
        StatusKind.NOT_FOUND,
        StatusKind.EXTERNAL,
        StatusKind.MISSING,
        StatusKind.NOT_FOUND,
    ]
    assert [a.witness_status.witness_kind for a in report.audits[:3]] == [
        WitnessKind.FUNCTION,
        WitnessKind.TEST,
        WitnessKind.PROPTEST,
    ]
    assert report.audits[0].witness_status.location == workspace / "src" / "lib.rs"
    assert report.resolved_count == 3
    assert report.external_count == 1
    assert report.broken_count == 2
    assert report.missing_count == 1
    assert not report.all_valid()
    assert [a.immunity.antigen for a in report.problematic_audits()] == [
        "DemoBrokenWitness",
        "D",
        "E",
    ]


def test_audit_all_valid(workspace):
    report = audit([Immunity("X", "real_test")], workspace)
    assert report.all_valid()
    assert report.to_dict()["resolved_count"] == 1
    assert report.to_dict()["audits"][0]["witness_status"]["witness_kind"] == "test"


def test_audit_skips_unlexable_files(tmp_path):
    (tmp_path / "bad.rs").write_text('fn broken() { "unterminated', encoding="utf-8")
    (tmp_path / "good.rs").write_text("fn fine() {}", encoding="utf-8")
    report = audit([Immunity("X", "fine"), Immunity("Y", "broken")], tmp_path)
    assert [a.witness_status.kind for a in report.audits] == [
        StatusKind.RESOLVED,
        StatusKind.NOT_FOUND,
    ]