class AuthServiceError(Exception):
    """Base class for failures raised while establishing a session."""


class IdentityVerificationError(AuthServiceError):
    """The identity provider rejected the credential or returned an unusable body."""


class DuplicateUserError(AuthServiceError):
    """More than one user row shares an email address."""

    def __init__(self, email: str):
        super().__init__("Multiple users found with the same email.")
        self.email = email


class UserExistsError(AuthServiceError):
    """An insert lost the race for an email another writer already claimed."""

    def __init__(self, email: str):
        super().__init__("A user with this email was created concurrently.")
        self.email = email
