from typing import Optional, Sequence


class CategoryError(Exception):
    """Base class for category tree errors."""


class CategoryNotFoundError(CategoryError):
    """Raised when a category id does not resolve."""

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Category not found: {category_id}")


class CategoryCycleError(CategoryError):
    """Raised when a traversal revisits a category.

    ``chain`` holds the ids walked up to and including the repeated one.
    """

    def __init__(self, category_id: int, chain: Optional[Sequence[int]] = None):
        self.category_id = category_id
        self.chain = list(chain or [])
        super().__init__(
            f"Cycle detected in category tree at {category_id}: "
            f"{' -> '.join(str(c) for c in self.chain)}"
        )


class CategoryConflictError(CategoryError):
    """Raised when a write would break a tree invariant."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Category validation failed: {'; '.join(errors)}")
