from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from bolsago.exceptions import ContractViolationError
from bolsago.imports import (
    DuplicateAction,
    DuplicateStatus,
    ImportResult,
    RawRecord,
    build_preview,
    commit,
    resolve_duplicates,
)
from bolsago.imports.models import SKIPPED_DUPLICATE_REASON, ImportSummary
from conftest import VALID_CPF, VALID_CPF_2, VALID_CPF_3, make_clock


@pytest.fixture
def scholars_preview(existing_records):
    records = [
        RawRecord(row_number=1, fields={"full_name": "Carla", "email": "carla@example.org", "cpf": VALID_CPF}),
        RawRecord(row_number=2, fields={"full_name": "Ana", "email": "ana@example.org", "cpf": VALID_CPF_2}),
        RawRecord(row_number=3, fields={"full_name": "Sem CPF", "email": "x@example.org"}),
        RawRecord(row_number=5, fields={"full_name": "Davi", "email": "davi@example.org", "cpf": VALID_CPF_3}),
    ]
    return build_preview(records, "scholars", existing_records, file_name="bolsistas.csv")


def _assert_invariants(result: ImportResult):
    assert result.imported_count == len(result.imported_records)
    assert result.rejected_count == len(result.rejected_records)
    assert result.imported_count + result.rejected_count == result.summary.total_processed
    assert result.summary.completed_at >= result.summary.started_at
    assert result.success == (result.imported_count > 0)


def test_commit_skips_duplicates_by_default(scholars_preview, fixed_clock):
    result = commit(scholars_preview, clock=fixed_clock)
    _assert_invariants(result)
    assert [r.row_number for r in result.imported_records] == [1, 5]
    assert [r.row_number for r in result.rejected_records] == [2, 3]
    assert result.rejected_records[0].reasons == [SKIPPED_DUPLICATE_REASON]
    assert result.rejected_records[1].reasons == ["Campo obrigatório ausente: cpf"]
    assert result.skipped_count == 1
    assert result.updated_count == 0
    assert result.summary.total_processed == 4
    assert result.summary.file_name == "bolsistas.csv"


def test_commit_update_counts_as_imported(scholars_preview, fixed_clock):
    rows = resolve_duplicates(scholars_preview.rows, {2: "update"})
    result = commit(scholars_preview.model_copy(update={"rows": rows}), clock=fixed_clock)
    _assert_invariants(result)
    assert [r.row_number for r in result.imported_records] == [1, 2, 5]
    assert result.imported_records[1].action == DuplicateAction.UPDATE
    assert result.updated_count == 1
    assert result.skipped_count == 0


def test_commit_of_empty_preview(existing_records, fixed_clock):
    preview = build_preview([], "projects", existing_records, file_name="vazio.csv")
    result = commit(preview, clock=fixed_clock)
    _assert_invariants(result)
    assert result.success is False
    assert result.summary.total_processed == 0


def test_commit_all_invalid_is_not_success(existing_records, fixed_clock):
    preview = build_preview(
        [RawRecord(row_number=1, fields={"code": "X"})], "projects", existing_records, file_name="p.csv"
    )
    result = commit(preview, clock=fixed_clock)
    assert result.success is False
    assert result.rejected_count == 1
    assert len(result.rejected_records[0].reasons) == 6


def test_commit_is_deterministic(scholars_preview):
    first = commit(scholars_preview, clock=make_clock())
    second = commit(scholars_preview, clock=make_clock())
    assert first.model_dump_json() == second.model_dump_json()
    assert first.summary.started_at == datetime(2026, 1, 5, 12, 0, 0, tzinfo=UTC)


def test_completed_at_never_precedes_started_at(scholars_preview):
    readings = iter([datetime(2026, 1, 5, 12, 0, 5, tzinfo=UTC), datetime(2026, 1, 5, 12, 0, 0, tzinfo=UTC)])
    result = commit(scholars_preview, clock=lambda: next(readings))
    assert result.summary.completed_at == result.summary.started_at


def test_resolve_keeps_skip_for_matches_without_action(scholars_preview):
    rows = resolve_duplicates(scholars_preview.rows)
    assert rows[1].action == DuplicateAction.SKIP
    assert rows[0].action is None
    # Input rows are left untouched.
    updated = resolve_duplicates(scholars_preview.rows, {"2": DuplicateAction.UPDATE})
    assert updated[1].action == DuplicateAction.UPDATE
    assert scholars_preview.rows[1].action == DuplicateAction.SKIP


def test_resolve_action_on_conflict_row(existing_records):
    preview = build_preview(
        [RawRecord(row_number=1, fields={"full_name": "Ana", "email": "outra@example.org", "cpf": VALID_CPF_2})],
        "scholars",
        existing_records,
        file_name="b.csv",
    )
    assert preview.rows[0].status == DuplicateStatus.CONFLICT
    rows = resolve_duplicates(preview.rows, {1: "update"})
    assert rows[0].action == DuplicateAction.UPDATE


def test_strict_contract_rejects_action_on_new_row(scholars_preview):
    with pytest.raises(ContractViolationError):
        resolve_duplicates(scholars_preview.rows, {1: "update"}, strict=True)


def test_strict_contract_rejects_unknown_row(scholars_preview):
    with pytest.raises(ContractViolationError):
        resolve_duplicates(scholars_preview.rows, {99: "skip"}, strict=True)


def test_lenient_contract_drops_stray_actions(scholars_preview, caplog):
    rows = resolve_duplicates(scholars_preview.rows, {1: "update", 99: "skip"}, strict=False)
    assert rows[0].action is None
    assert [r.row_number for r in rows] == [1, 2, 3, 5]
    assert "ignoring duplicate action" in caplog.text


def test_invalid_action_value_is_a_contract_violation(scholars_preview):
    with pytest.raises(ContractViolationError):
        resolve_duplicates(scholars_preview.rows, {2: "merge"}, strict=False)


def test_result_rejects_inconsistent_counts():
    summary = ImportSummary(
        started_at=datetime(2026, 1, 1, tzinfo=UTC),
        completed_at=datetime(2026, 1, 1, tzinfo=UTC),
        import_type="projects",
        file_name="p.csv",
        total_processed=2,
    )
    with pytest.raises(ValidationError):
        ImportResult(success=False, imported_count=0, rejected_count=0, summary=summary)


def test_summary_rejects_reversed_timestamps():
    with pytest.raises(ValidationError):
        ImportSummary(
            started_at=datetime(2026, 1, 2, tzinfo=UTC),
            completed_at=datetime(2026, 1, 1, tzinfo=UTC),
            import_type="projects",
            file_name="p.csv",
            total_processed=0,
        )
