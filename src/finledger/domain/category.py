"""Category domain service."""

from typing import Any, Optional

from finledger.database.base import Database
from finledger.domain.entities import Category
from finledger.domain.errors import NotFoundError, ValidationError, category_path_not_found


class CategoryService:
    """Service for managing an owner's categories."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(self, owner_id: str, name: str, parent_path: Optional[str] = None) -> int:
        """Create a category.

        Args:
            owner_id: Category owner
            name: Category name
            parent_path: Optional parent category path (e.g., "Food & Dining")

        Returns:
            Category ID

        Raises:
            ValidationError: If the name is empty or contains the path separator
            NotFoundError: If parent category doesn't exist
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        if ">" in name:
            raise ValidationError("Category name cannot contain '>'")

        parent_id = None
        if parent_path is not None:
            parent = self.db.get_category_by_path(owner_id, parent_path)
            if parent is None:
                raise NotFoundError(category_path_not_found(parent_path))
            parent_id = parent.id

        return self.db.create_category(owner_id=owner_id, name=name, parent_id=parent_id)

    def get_category(self, category_id: int) -> Optional[Category]:
        return self.db.get_category(category_id)

    def get_category_by_path(self, owner_id: str, path: str) -> Optional[Category]:
        """Get category by path (e.g., "Food & Dining > Coffee")."""
        return self.db.get_category_by_path(owner_id, path)

    def list_categories(self, owner_id: str, parent_id: Optional[int] = None) -> list[Category]:
        return self.db.list_categories(owner_id, parent_id=parent_id)

    def get_category_tree(self, owner_id: str) -> list[dict[str, Any]]:
        """Get full category tree.

        Returns:
            List of root categories with nested children
        """
        return self.db.get_category_tree(owner_id)

    def format_category_path(self, category_id: int) -> str:
        """Get full path for a category.

        Args:
            category_id: Category ID

        Returns:
            Full category path (e.g., "Food & Dining > Coffee")
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

        return " > ".join(reversed(path_parts))
