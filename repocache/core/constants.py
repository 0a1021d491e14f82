import enum


class Mode(str, enum.Enum):
    """How the command reacts to per-package failures once the whole batch has run."""

    STRICT = "strict"
    PERMISSIVE = "permissive"

    def __str__(self) -> str:
        return self.value
