# antigen

Declare named failure classes, mark code that presents them, claim immunity
with a witness, and audit whether those witnesses really exist in a source
tree of `.rs` files.

## Concepts

- **antigen**: a named failure class with a structural fingerprint, e.g.
  `name = "panicking-in-drop", fingerprint = "impl Drop with unwrap/expect/panic in body"`.
  Names must be kebab-case: lowercase ASCII letters, digits and single
  hyphens, not starting or ending with a hyphen.
- **presents**: marks an item as exhibiting an antigen's pattern.
- **immune**: claims immunity to an antigen and names a `witness` (a test,
  a proptest, a lint or a proof) that backs the claim. A claim without a
  witness is rejected.
- **descended_from**: records that an item derives from a parent path.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `antigen.lexer`: `tokenize(source)` splits text into a token tree of
  `Token` objects (`TokenKind.IDENT`, `PUNCT`, `STRING`, `CHAR`, `LITERAL`,
  `LIFETIME`, `GROUP`). Comments are dropped, string literals are decoded into
  `Token.value`, and bracketed regions become `GROUP` tokens with `children`.
  Malformed input raises `LexError`.
- `antigen.parse`: parses and validates attribute arguments.
- `antigen.macros`: checks an attribute together with the item it annotates.
- `antigen.index`: builds a flat index of function names in a source tree.
- `antigen.audit`: resolves immunity witnesses against that index.

## Parsing attribute arguments

Each `parse_*` function takes the text between the attribute's parentheses:

```python
from antigen.parse import ParseError, parse_antigen_args, parse_immune_args

args = parse_antigen_args(
    'name = "panicking-in-drop", fingerprint = "impl Drop with panic", '
    'references = ["GAP-1", "DEC-2"]'
)
args.validate()
print(args.name, args.fingerprint, args.family, args.summary, args.references)

claim = parse_immune_args('PanickingInDrop, witness = my::module::test_fn, rationale = "checked"')
claim.validate()
print(claim.antigen, claim.witness, claim.rationale)
```

`parse_antigen_args` accepts the fields `name`, `fingerprint`, `family`,
`summary` (string literals) and `references` (an array of string literals), in
any order; `name` and `fingerprint` are required. `parse_immune_args`
accepts an antigen path followed by `witness = <expression>` and
`rationale = "<string>"`. `parse_presents_args` and
`parse_descended_from_args` take a single path. `is_kebab_case(s)` is the
name rule used by `AntigenArgs.validate()`.

Malformed input, unknown fields, missing required fields, empty or
non-kebab names, empty fingerprints and (on `ImmuneArgs.validate()`) claims
without a witness all raise `ParseError`.

## Checking an attribute with its item

`antigen.macros` offers `antigen`, `presents`, `immune` and `descended_from`,
each taking `(args, item)` as source text:

```python
from antigen.macros import antigen, immune

text = antigen('name = "panicking-in-drop", fingerprint = "x"', "pub struct PanickingInDrop;")
# text starts with a `#[doc = "..."]` line followed by the struct

immune("PanickingInDrop, witness = no_panic_test", "impl Drop for SafeType {}")
```

`antigen` requires the item to be a unit struct and returns it prefixed with
a doc attribute; the other three return the item unchanged. Every rejection
raises `ParseError`.

## Auditing witnesses

`antigen.index.collect_function_index(root)` walks `root` (skipping
`target`, `.git`, `node_modules` and symbolic links), reads every `.rs` file,
and maps each function name to the first file it was found in and a
`WitnessKind`: `TEST` for a function with `#[test]`, `PROPTEST` for a test
declared inside a `proptest!` block, `FUNCTION` otherwise. Free functions,
nested functions and methods of `impl` blocks are indexed; trait method
declarations are not. Files that cannot be read or lexed are skipped.
`index_source(source, file_path)` does the same for a single text.

`antigen.audit.audit(immunities, workspace_root)` validates each `Immunity`
against that index:

```python
from pathlib import Path
from antigen.audit import Immunity, audit

immunities = [
    Immunity(antigen="PanickingInDrop", witness="safe_type_drop_no_panic_test"),
    Immunity(antigen="DemoBrokenWitness", witness="nonexistent_test"),
    Immunity(antigen="PanickingInDrop", witness="clippy::no_panic_in_drop"),
]
report = audit(immunities, Path("."))
print(report.resolved_count, report.external_count,
      report.broken_count, report.missing_count)
if not report.all_valid():
    for item in report.problematic_audits():
        print(item.immunity.witness, item.witness_status.to_dict())
```

Each witness gets a `WitnessStatus` whose `kind` is a `StatusKind`:

- `RESOLVED`: a function with the witness's last `::` segment as its name
  was found (this says it exists, not that it runs or passes);
- `EXTERNAL`: the witness names a recognised tool (`clippy`, `kani`,
  `prusti`, `creusot`, `verus`, `cargo-mutants`);
- `NOT_FOUND`: no function of that name exists under the root;
- `MISSING`: the witness is empty.

`validate_witness(witness, index)` and `detect_external_tool(witness)` are
available on their own. `Immunity`, `WitnessStatus`, `ImmunityAudit` and
`AuditReport` each have a `to_dict()` giving a JSON-ready mapping.

## What this package does not do

- It has no command-line program; everything is used from Python.
- It does not find `immune(...)` declarations in source files by itself:
  `audit` takes the `Immunity` claims you give it.
- It does not run witnesses or check what they assert, and witness
  resolution is by bare function name only, without module paths.