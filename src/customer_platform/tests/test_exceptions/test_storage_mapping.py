import pytest
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    NoResultFound,
    OperationalError,
    ProgrammingError,
    TimeoutError as PoolTimeoutError,
)

from customer_platform.exceptions import DatabaseError, NotFoundError
from customer_platform.exceptions.integrity_classifier import (
    StorageErrorKind,
    classify_storage_error,
    storage_code_of,
)
from customer_platform.exceptions.mapper import (
    database_error_from,
    db_error_handler,
    extract_columns_from_integrity,
)


class FakePgError(Exception):
    """Stand-in for a driver exception exposing a SQLSTATE."""

    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


def integrity(message, pgcode=None):
    orig = FakePgError(message, pgcode) if pgcode else Exception(message)
    return IntegrityError("INSERT INTO customer ...", {}, orig)


class TestClassifyStorageError:

    @pytest.mark.parametrize(
        "exc, kind",
        [
            (integrity("UNIQUE constraint failed: customer.reference_number"), StorageErrorKind.UNIQUE_VIOLATION),
            (integrity("NOT NULL constraint failed: user.email"), StorageErrorKind.NOT_NULL_VIOLATION),
            (integrity("FOREIGN KEY constraint failed"), StorageErrorKind.FOREIGN_KEY_VIOLATION),
            (integrity("CHECK constraint failed: positive_limit"), StorageErrorKind.CHECK_VIOLATION),
            (integrity("duplicate key value violates unique constraint", "23505"), StorageErrorKind.UNIQUE_VIOLATION),
            (integrity("insert or update violates foreign key", "23503"), StorageErrorKind.FOREIGN_KEY_VIOLATION),
            (integrity("something odd"), StorageErrorKind.UNKNOWN),
        ],
    )
    def test_integrity_errors(self, exc, kind):
        assert classify_storage_error(exc)[0] is kind

    def test_postgres_timeout_and_connection_codes(self):
        canceled = DBAPIError("SELECT", {}, FakePgError("canceling statement", "57014"))
        refused = DBAPIError("SELECT", {}, FakePgError("connection failure", "08006"))

        assert classify_storage_error(canceled)[0] is StorageErrorKind.TIMEOUT
        assert classify_storage_error(refused)[0] is StorageErrorKind.UNREACHABLE

    def test_operational_message_heuristics(self):
        locked = OperationalError("UPDATE", {}, Exception("database is locked"))
        unreachable = OperationalError("SELECT", {}, Exception("could not connect to server"))

        assert classify_storage_error(locked)[0] is StorageErrorKind.TIMEOUT
        assert classify_storage_error(unreachable)[0] is StorageErrorKind.UNREACHABLE

    def test_pool_timeout_and_driver_failures(self):
        assert classify_storage_error(PoolTimeoutError("pool exhausted"))[0] is StorageErrorKind.TIMEOUT
        assert classify_storage_error(TimeoutError())[0] is StorageErrorKind.TIMEOUT
        assert classify_storage_error(ConnectionRefusedError())[0] is StorageErrorKind.UNREACHABLE

    def test_no_result_is_record_not_found(self):
        assert classify_storage_error(NoResultFound())[0] is StorageErrorKind.RECORD_NOT_FOUND

    def test_anything_else_is_unknown(self):
        syntax = ProgrammingError("SELEC 1", {}, Exception("syntax error"))

        assert classify_storage_error(syntax)[0] is StorageErrorKind.UNKNOWN
        assert classify_storage_error(ValueError("x"))[0] is StorageErrorKind.UNKNOWN

    def test_storage_code_prefers_vendor_code(self):
        pg = integrity("duplicate key", "23505")
        sqlite = integrity("UNIQUE constraint failed: customer.reference_number")

        assert storage_code_of(pg, StorageErrorKind.UNIQUE_VIOLATION) == "23505"
        assert storage_code_of(sqlite, StorageErrorKind.UNIQUE_VIOLATION) == "UNIQUE_VIOLATION"


class TestExtractColumns:

    @pytest.mark.parametrize(
        "message, columns",
        [
            ('DETAIL:  Key (email)=(a@b.com) already exists.', ["email"]),
            ('null value in column "customer_name" violates not-null constraint', ["customer_name"]),
            ("UNIQUE constraint failed: user_has_account.user_id, user_has_account.account_id",
             ["user_id", "account_id"]),
            ("FOREIGN KEY constraint failed", None),
        ],
    )
    def test_postgres_and_sqlite_messages(self, message, columns):
        assert extract_columns_from_integrity(integrity(message)) == columns


class TestDatabaseErrorFrom:

    @pytest.mark.parametrize(
        "exc, status, code",
        [
            (integrity("UNIQUE constraint failed: customer.reference_number"), 409, "UNIQUE_CONSTRAINT_VIOLATION"),
            (integrity("NOT NULL constraint failed: customer.status"), 400, "NULL_CONSTRAINT_VIOLATION"),
            (integrity("FOREIGN KEY constraint failed"), 400, "FOREIGN_KEY_CONSTRAINT"),
            (integrity("CHECK constraint failed: x"), 400, "CHECK_CONSTRAINT_VIOLATION"),
            (NoResultFound(), 404, "RECORD_NOT_FOUND"),
            (OperationalError("SELECT", {}, Exception("connection refused")), 503, "DATABASE_UNREACHABLE"),
            (OperationalError("SELECT", {}, Exception("statement timeout")), 504, "DATABASE_TIMEOUT"),
            (ProgrammingError("SELECT", {}, Exception("syntax error")), 500, "DATABASE_ERROR"),
        ],
    )
    def test_status_and_code_per_condition(self, exc, status, code):
        error = database_error_from(exc, "create customer", "customer")

        assert isinstance(error, DatabaseError)
        assert error.status_code == status
        assert error.error_code == code
        assert error.metadata["operation"] == "create customer"
        assert error.metadata["entity"] == "customer"

    def test_message_never_contains_driver_text(self):
        exc = integrity('duplicate key value violates unique constraint "uq_customer_reference_number" '
                        'DETAIL:  Key (reference_number)=(SECRET-REF) already exists.', "23505")

        error = database_error_from(exc, "create customer", "customer", request_id="r-5")

        assert error.message == "customer already exists for field(s): reference_number"
        assert "SECRET-REF" not in error.message
        assert error.metadata["fields"] == ["reference_number"]
        assert error.metadata["storage_code"] == "23505"
        assert error.request_id == "r-5"

    def test_extra_metadata_is_merged(self):
        error = database_error_from(
            NoResultFound(), "find users by account detail", "user", extra_metadata={"identifier": 3}
        )

        assert error.metadata["identifier"] == 3


@pytest.mark.asyncio
class TestDbErrorHandler:

    async def test_wraps_storage_failure_and_chains_cause(self):
        original = integrity("UNIQUE constraint failed: customer.reference_number")

        with pytest.raises(DatabaseError) as exc_info:
            async with db_error_handler("create customer", "customer", request_id="r-1"):
                raise original

        assert exc_info.value.__cause__ is original
        assert exc_info.value.status_code == 409
        assert exc_info.value.request_id == "r-1"

    async def test_taxonomy_errors_pass_through(self):
        not_found = NotFoundError.for_resource("customer", 1)

        with pytest.raises(NotFoundError) as exc_info:
            async with db_error_handler("update customer", "customer"):
                raise not_found

        assert exc_info.value is not_found

    async def test_no_error_no_effect(self):
        async with db_error_handler("count customer", "customer"):
            value = 1 + 1

        assert value == 2
