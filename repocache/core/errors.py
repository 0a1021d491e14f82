import textwrap
from pathlib import Path
from typing import ClassVar

from repocache import APP_NAME

_argument_not_specified = "__argument_not_specified__"

_exit_codes: dict[str, int] = {
    "BaseError": 1,
    "UsageError": 2,
    "PathOutsideRoot": 3,
    "InvalidInput": 4,
    "RepositoryNotFound": 5,
    "UnexpectedFormat": 6,
    "ChecksumVerificationFailed": 7,
    "InvalidChecksum": 8,
    "FetchError": 9,
}
if len(_exit_codes) != len(set(_exit_codes.values())):
    raise ValueError("Duplicate exit codes found")


def get_error_name_from_code(code: int) -> str | None:
    """Return the error class name for the given exit code.

    :param code: Exit code (e.g. from a process or from BaseError.exit_code).
    :return: The corresponding error class name, or None if the code is not registered.
    """
    return next((k for k, v in _exit_codes.items() if v == code), None)


class BaseError(Exception):
    """Root of the error hierarchy. Don't raise this directly, use more specific error types."""

    exit_code: ClassVar[int] = 1
    default_solution: ClassVar[str | None] = None

    def __init__(
        self,
        reason: str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize BaseError.

        :param reason: explain what went wrong
        :param solution: politely suggest a potential solution to the user
        """
        super().__init__(reason)
        if solution == _argument_not_specified:
            self.solution = self.default_solution
        else:
            self.solution = solution

    def __init_subclass__(cls) -> None:
        class_name = cls.__name__
        if class_name not in _exit_codes:
            raise ValueError(f"No exit code found for {class_name}")
        cls.exit_code = _exit_codes[class_name]
        super().__init_subclass__()

    def friendly_msg(self) -> str:
        """Return the user-friendly representation of this error."""
        msg = str(self)
        if self.solution:
            msg += f"\n{textwrap.indent(self.solution, prefix='  ')}"
        return msg


class UsageError(BaseError):
    """Generic error for "repocache was used incorrectly." Prefer more specific errors."""


class PathOutsideRoot(UsageError):
    """After joining a subpath, the result is outside the root of a rooted path."""

    def __init__(
        self,
        s_self: str,
        s_other: str = "",
        s_root: str = "",
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize a PathOutsideRoot.

        :param s_self: The current path before joining.
        :param s_other: The path component that was joined.
        :param s_root: The root directory that must not be left.
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Path {s_self}/{s_other} outside {s_root}, refusing to proceed"
        super().__init__(reason, solution=solution)

    default_solution = (
        f"With security in mind, {APP_NAME} will not write files outside the "
        "cache and link directories."
    )


class InvalidInput(UsageError):
    """User input was invalid."""


class RepositoryNotFound(UsageError):
    """The given directory does not look like a package repository."""

    def __init__(
        self,
        repo_root: Path | str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize RepositoryNotFound.

        :param repo_root: The directory that was expected to hold a repository
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"No repository found in {repo_root}"
        super().__init__(reason, solution=solution)

    default_solution = 'Please make sure there is a "packages" directory in the repository root.'


class UnexpectedFormat(UsageError):
    """The Application failed to parse a repository file (e.g. repo.yaml)."""

    default_solution = (
        "Please check if the format of your file is correct.\n"
        f"If yes, please let the maintainers know that {APP_NAME} doesn't handle it properly."
    )


class ChecksumVerificationFailed(UsageError):
    """Checksum verification failed for a file."""

    def __init__(
        self,
        filename: Path | str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize ChecksumVerificationFailed.

        :param filename: Name of the file that failed checksum verification
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Failed to verify {filename} against any of the provided checksums"
        super().__init__(reason, solution=solution)

    default_solution = (
        "Verify that the file has not been corrupted and that the expected checksums are correct."
    )


class InvalidChecksum(UsageError):
    """Provided checksum is not valid data."""

    def __init__(
        self,
        checksum: list[str] | str,
        reason: str | None = None,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize InvalidChecksum.

        :param checksum: The string representation of invalid checksum value(s)
        :param reason: explain what is wrong with the checksum, if known
        :param solution: politely suggest a potential solution to the user
        """
        if reason is None:
            reason = f"Invalid checksum(s): {checksum!r}"

        super().__init__(reason, solution=solution)

    default_solution = "Please check that the checksum is written as '<algorithm>=<hex digest>'"


class FetchError(BaseError):
    """The Application failed to fetch an archive needed to fill the cache."""

    default_solution = (
        "The error might be intermittent, please try again.\n"
        f"If the issue seems to be on the {APP_NAME} side, please contact the maintainers."
    )
