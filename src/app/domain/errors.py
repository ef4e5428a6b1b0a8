from __future__ import annotations


class PartnerbookError(Exception):
    pass


class AlreadyPartneredError(PartnerbookError):
    def __init__(self, user_id: str, partnership_id: str | None = None):
        super().__init__(f"User already has a partnership: {user_id}")
        self.user_id = user_id
        self.partnership_id = partnership_id


class InvalidInviteCodeError(PartnerbookError):
    def __init__(self, code: str):
        super().__init__(f"No pending partnership for invite code: {code}")
        self.code = code


class SelfInviteError(PartnerbookError):
    def __init__(self, user_id: str, code: str):
        super().__init__(f"User {user_id} cannot redeem their own invite code")
        self.user_id = user_id
        self.code = code


class InviteCodeExhaustedError(PartnerbookError):
    def __init__(self, attempts: int):
        super().__init__(f"Could not allocate a free invite code after {attempts} attempts")
        self.attempts = attempts


class NotFoundError(PartnerbookError):
    pass


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class RecipeNotFoundError(NotFoundError):
    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe not found: {recipe_id}")
        self.recipe_id = recipe_id


class VersionNotFoundError(NotFoundError):
    def __init__(self, recipe_id: str, version_number: int):
        super().__init__(f"Recipe {recipe_id} has no version {version_number}")
        self.recipe_id = recipe_id
        self.version_number = version_number


class CommentNotFoundError(NotFoundError):
    def __init__(self, comment_id: str):
        super().__init__(f"Comment not found: {comment_id}")
        self.comment_id = comment_id


class NotAMemberError(PartnerbookError):
    def __init__(self, user_id: str, partnership_id: str):
        super().__init__(f"User {user_id} is not a member of partnership {partnership_id}")
        self.user_id = user_id
        self.partnership_id = partnership_id


class RecipeAccessError(PartnerbookError):
    def __init__(self, user_id: str, recipe_id: str):
        super().__init__(f"User {user_id} cannot access recipe {recipe_id}")
        self.user_id = user_id
        self.recipe_id = recipe_id


class CommentPermissionError(PartnerbookError):
    def __init__(self, user_id: str, comment_id: str):
        super().__init__(f"User {user_id} is not the author of comment {comment_id}")
        self.user_id = user_id
        self.comment_id = comment_id


class RecipeValidationError(PartnerbookError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ProfileValidationError(PartnerbookError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class WriteFailedError(PartnerbookError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Write failed during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class BatchTooLargeError(WriteFailedError):
    def __init__(self, operation_count: int, limit: int):
        super().__init__("commit", f"{operation_count} operations exceed the batch limit of {limit}")
        self.operation_count = operation_count
        self.limit = limit


class StoreConfigurationError(PartnerbookError):
    def __init__(self, errors: list[str]):
        super().__init__(f"Document store configuration errors: {', '.join(errors)}")
        self.errors = errors


class StoreUnavailableError(PartnerbookError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Document store unavailable during {operation}: {reason}")
        self.operation = operation
        self.reason = reason
