"""Category domain service."""

from typing import Any, Optional

from bankmap.database.base import Database
from bankmap.domain.entities import Category
from bankmap.domain.errors import ConflictError, NotFoundError, ValidationError, category_path_not_found

PATH_SEPARATOR = " > "


class CategoryService:
    """Service for managing the category hierarchy used by splits."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(self, name: str, parent_path: Optional[str] = None) -> int:
        """Create a category.

        Args:
            name: Category name
            parent_path: Optional parent category path (e.g., "Food & Dining")

        Returns:
            Category ID

        Raises:
            ValidationError: If the name is blank
            NotFoundError: If the parent category doesn't exist
            ConflictError: If the category already exists under the parent
        """
        name = name.strip()
        if not name:
            raise ValidationError("Category name cannot be empty")

        parent_id = None
        if parent_path is not None:
            parent = self.db.get_category_by_path(parent_path)
            if parent is None:
                raise NotFoundError(category_path_not_found(parent_path))
            parent_id = parent.id

        if any(cat.name == name for cat in self.db.list_categories(parent_id=parent_id)):
            full_path = f"{parent_path}{PATH_SEPARATOR}{name}" if parent_path else name
            raise ConflictError(f"Category '{full_path}' already exists")

        return self.db.create_category(name=name, parent_id=parent_id)

    def get_category(self, category_id: int) -> Optional[Category]:
        return self.db.get_category(category_id)

    def get_category_by_path(self, path: str) -> Optional[Category]:
        """Get category by path.

        Args:
            path: Category path (e.g., "Food & Dining > Groceries")

        Returns:
            Category or None if not found
        """
        return self.db.get_category_by_path(path)

    def list_categories(self, parent_id: Optional[int] = None) -> list[Category]:
        return self.db.list_categories(parent_id=parent_id)

    def get_category_tree(self) -> list[dict[str, Any]]:
        """Get full category tree.

        Returns:
            List of root categories with nested children
        """
        return self.db.get_category_tree()

    def format_category_path(self, category_id: int) -> str:
        """Get full path for a category, e.g. "Food & Dining > Groceries"."""
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
