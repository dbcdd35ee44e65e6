"""Mock responses for running without API calls (USE_MOCK=true)."""

MOCK_NARRATIVE = """The change is small and mostly mechanical.

- The local checks flag a leftover TODO and a bare numeric literal; both are \
worth cleaning up before merge, the literal deserves a named constant.
- Error paths are not covered by tests. Add at least one test for the \
failure branch.

Verdict: fine to merge after the nits are addressed."""
