"""Category domain service."""

from typing import Optional

from pocketledger.database.base import CategoryStore
from pocketledger.domain.entities import Category
from pocketledger.domain.errors import ConflictError, NotFoundError, ValidationError

PATH_SEPARATOR = " > "


class CategoryService:
    """Service for managing categories."""

    def __init__(self, categories: CategoryStore):
        """Initialize category service.

        Args:
            categories: Category store
        """
        self.categories = categories

    def create_category(self, name: str, parent_path: Optional[str] = None) -> int:
        """Create a category.

        Args:
            name: Category name
            parent_path: Optional parent category path (e.g., "Food & Dining")

        Returns:
            Category ID

        Raises:
            ValidationError: If the name is empty or contains the path separator
            NotFoundError: If parent category doesn't exist
            ConflictError: If the category already exists under that parent
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        if PATH_SEPARATOR.strip() in name:
            raise ValidationError(f"Category name cannot contain '{PATH_SEPARATOR.strip()}'")

        parent_id = None
        full_path = name
        if parent_path is not None:
            parent = self.categories.get_category_by_path(parent_path)
            if parent is None:
                raise NotFoundError(f"Parent category '{parent_path}' not found")
            parent_id = parent.id
            full_path = f"{parent_path}{PATH_SEPARATOR}{name}"

        if self.categories.get_category_by_path(full_path) is not None:
            raise ConflictError(f"Category '{full_path}' already exists")

        return self.categories.create_category(name=name, parent_id=parent_id)

    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID.

        Args:
            category_id: Category ID

        Returns:
            Category entity or None if not found
        """
        return self.categories.get_category(category_id)

    def get_category_by_path(self, path: str) -> Optional[Category]:
        """Get category by path.

        Args:
            path: Category path (e.g., "Food & Dining > Groceries")

        Returns:
            Category entity or None if not found
        """
        return self.categories.get_category_by_path(path)

    def list_categories(self, parent_id: Optional[int] = None) -> list[Category]:
        """List categories, optionally only the children of one parent."""
        return self.categories.list_categories(parent_id=parent_id)

    def format_category_path(self, category_id: int) -> str:
        """Get full path for a category.

        Args:
            category_id: Category ID

        Returns:
            Full category path (e.g., "Food & Dining > Groceries"), or ""
            when the category doesn't exist
        """
        cat = self.get_category(category_id)
        if cat is None:
            return ""

        path_parts = [cat.name]
        current_parent_id = cat.parent_id

        while current_parent_id is not None:
            parent = self.get_category(current_parent_id)
            if parent is None:
                break
            path_parts.append(parent.name)
            current_parent_id = parent.parent_id

        return PATH_SEPARATOR.join(reversed(path_parts))
