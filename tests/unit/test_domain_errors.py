from __future__ import annotations

import pytest

from src.app.domain.errors import (
    AlreadyPartneredError,
    BatchTooLargeError,
    CommentNotFoundError,
    CommentPermissionError,
    InvalidInviteCodeError,
    InviteCodeExhaustedError,
    NotAMemberError,
    NotFoundError,
    PartnerbookError,
    RecipeAccessError,
    RecipeNotFoundError,
    RecipeValidationError,
    SelfInviteError,
    StoreConfigurationError,
    StoreUnavailableError,
    UserNotFoundError,
    VersionNotFoundError,
    WriteFailedError,
)


class TestPartnershipErrors:
    def test_already_partnered_keeps_ids(self) -> None:
        error = AlreadyPartneredError("u1", "p1")
        assert "u1" in str(error)
        assert error.user_id == "u1"
        assert error.partnership_id == "p1"

    def test_invalid_code_includes_code(self) -> None:
        error = InvalidInviteCodeError("123456")
        assert "123456" in str(error)
        assert error.code == "123456"

    def test_self_invite(self) -> None:
        error = SelfInviteError("u1", "482913")
        assert error.user_id == "u1"
        assert error.code == "482913"

    def test_code_exhausted(self) -> None:
        error = InviteCodeExhaustedError(10)
        assert "10" in str(error)
        assert error.attempts == 10

    def test_not_a_member(self) -> None:
        error = NotAMemberError("u1", "p1")
        assert "u1" in str(error) and "p1" in str(error)


class TestNotFoundErrors:
    @pytest.mark.parametrize(
        "error",
        [
            UserNotFoundError("u1"),
            RecipeNotFoundError("r1"),
            VersionNotFoundError("r1", 3),
            CommentNotFoundError("c1"),
        ],
    )
    def test_share_not_found_base(self, error: Exception) -> None:
        assert isinstance(error, NotFoundError)
        assert isinstance(error, PartnerbookError)

    def test_version_not_found_attributes(self) -> None:
        error = VersionNotFoundError("r1", 3)
        assert error.recipe_id == "r1"
        assert error.version_number == 3


class TestWriteErrors:
    def test_write_failed(self) -> None:
        error = WriteFailedError("commit", "permission denied")
        assert "commit" in str(error)
        assert "permission denied" in str(error)
        assert error.reason == "permission denied"

    def test_batch_too_large_is_write_failure(self) -> None:
        error = BatchTooLargeError(501, 500)
        assert isinstance(error, WriteFailedError)
        assert error.operation_count == 501
        assert error.limit == 500
        assert "500" in str(error)

    def test_store_configuration_lists_errors(self) -> None:
        error = StoreConfigurationError(["SUPABASE_URL is required", "key missing"])
        assert "SUPABASE_URL is required" in str(error)
        assert error.errors == ["SUPABASE_URL is required", "key missing"]


class TestAccessErrors:
    def test_recipe_access(self) -> None:
        error = RecipeAccessError("u1", "r1")
        assert error.user_id == "u1"
        assert error.recipe_id == "r1"

    def test_comment_permission(self) -> None:
        error = CommentPermissionError("u1", "c1")
        assert error.comment_id == "c1"

    def test_validation_field(self) -> None:
        error = RecipeValidationError("Title is required", field="title")
        assert str(error) == "Title is required"
        assert error.field == "title"


class TestStoreUnavailableError:
    def test_includes_operation_and_reason(self) -> None:
        error = StoreUnavailableError("read users/u1", "connection refused")
        assert "read users/u1" in str(error)
        assert error.operation == "read users/u1"
        assert error.reason == "connection refused"
        assert isinstance(error, PartnerbookError)
        assert not isinstance(error, WriteFailedError)
