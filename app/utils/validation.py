import re
from typing import Optional, Sequence

from app.core.exceptions import CategoryConflictError


def slugify_category_name(name: str) -> str:
    """URL-safe slug: lowercase, runs of other characters collapsed to '-'."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower())
    return slug.strip("-")


def validate_category_move(
    category_id: int,
    new_parent_id: Optional[int],
    parent_chain: Sequence[int],
) -> list[str]:
    """Check that re-parenting a category keeps the tree acyclic.

    ``parent_chain`` is the new parent's own root-first ancestor chain.
    """
    errors = []

    if new_parent_id is None:
        return errors

    if new_parent_id == category_id:
        errors.append("Category cannot be its own parent")
    elif category_id in parent_chain:
        errors.append("Cannot set parent: would create circular reference")

    return errors


def validate_and_raise(
    category_id: int,
    new_parent_id: Optional[int],
    parent_chain: Sequence[int],
) -> None:
    """Validate a category move and raise if it would break the tree."""
    errors = validate_category_move(category_id, new_parent_id, parent_chain)
    if errors:
        raise CategoryConflictError(errors)
