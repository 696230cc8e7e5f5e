from datetime import UTC, datetime, timedelta

import pytest

from bolsago.domain.models import BankValidationStatus
from bolsago.imports import ExistingRecord, ImportService, InMemoryExistingRecords, InMemoryRecordSink, ImportType

# Known-valid CPFs (check digits verified by hand).
VALID_CPF = "11144477735"
VALID_CPF_2 = "52998224725"
VALID_CPF_3 = "12345678909"


@pytest.fixture
def existing_records():
    """
    Index with one of each type already persisted.
    """
    return InMemoryExistingRecords(
        {
            ImportType.SCHOLARS: [
                ExistingRecord(record_id="prof-1", fields={"cpf": "529.982.247-25", "email": "ana@example.org"}),
            ],
            ImportType.BANK_ACCOUNTS: [
                ExistingRecord(
                    record_id="bank-1",
                    fields={"user_email": "ana@example.org"},
                    validation_status=BankValidationStatus.PENDING,
                ),
                ExistingRecord(
                    record_id="bank-2",
                    fields={"user_email": "bruno@example.org"},
                    validation_status=BankValidationStatus.VALIDATED,
                ),
            ],
            ImportType.PROJECTS: [
                ExistingRecord(record_id="proj-1", fields={"code": "ICCA-001"}),
            ],
            ImportType.ENROLLMENTS: [
                ExistingRecord(record_id="enr-1", fields={"user_email": "ana@example.org", "project_code": "ICCA-001"}),
            ],
        }
    )


def make_clock(start: datetime = datetime(2026, 1, 5, 12, 0, 0, tzinfo=UTC)):
    """Clock returning ``start``, then one second later on each call."""
    ticks = iter(range(1000))
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def fixed_clock():
    return make_clock()


@pytest.fixture
def record_sink():
    return InMemoryRecordSink()


@pytest.fixture
def import_service(existing_records, record_sink):
    return ImportService(lookup=existing_records, sink=record_sink)
