"""
Report selection management for Intune Assignments.

Handles loading and validating the group name and policy categories a report
is built for, from JSON files, CLI arguments or HTTP request bodies.
"""

# Standard library imports
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Local imports
from .analyzer.categories import ALL_CATEGORIES, canonical_category, expand_categories


class SelectionConfig:
    """Holds the group and policy categories selected for one report."""

    def __init__(self, selection_data: Dict = None):
        """Initialize the selection.

        Args:
            selection_data: Dictionary with 'group' (display name) and 'categories'
                            (list of category names, or a single name such as 'All')
        """
        self.group: Optional[str] = None
        self.categories: List[str] = []
        self.unknown_categories: List[str] = []

        if selection_data:
            self._load_selection_data(selection_data)

    def _load_selection_data(self, data: Dict):
        group = data.get('group')
        if isinstance(group, str) and group.strip():
            self.group = group.strip()

        categories = data.get('categories') or []
        if isinstance(categories, str):
            categories = [categories]
        elif not isinstance(categories, (list, tuple)):
            # Neither a name nor a list of names: report it instead of iterating it
            self.unknown_categories.append(repr(categories))
            return
        for name in categories:
            self.add_category(name)

    def add_category(self, name: str) -> bool:
        """Add a category by name; unknown names are remembered for validation.

        Returns:
            True if the name was recognised
        """
        try:
            canonical = canonical_category(name)
        except ValueError:
            self.unknown_categories.append(str(name))
            return False
        if canonical not in self.categories:
            self.categories.append(canonical)
        return True

    @classmethod
    def from_file(cls, file_path: str) -> 'SelectionConfig':
        """Load a selection from a JSON file.

        Args:
            file_path: Path to JSON selection file

        Returns:
            SelectionConfig instance

        Raises:
            FileNotFoundError: If selection file doesn't exist
            json.JSONDecodeError: If file contains invalid JSON
            ValueError: If file format is invalid
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Selection file not found: {file_path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError("Selection file must contain a JSON object with 'group' and 'categories'")

        return cls(data)

    def merge_args(self, group: str = None, categories: List[str] = None):
        """Let explicit CLI arguments override values loaded from a file."""
        if group and group.strip():
            self.group = group.strip()
        if categories:
            self.categories = []
            self.unknown_categories = []
            for name in categories:
                self.add_category(name)

    def has_group(self) -> bool:
        return bool(self.group)

    def has_categories(self) -> bool:
        return bool(self.categories)

    def selected_categories(self) -> List[str]:
        """Return the concrete categories to process, with 'All' expanded."""
        return expand_categories(self.categories)

    def validate(self) -> Tuple[bool, List[str]]:
        """Check the selection is complete.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        errors = []
        if not self.has_group():
            errors.append("No group name provided")
        if self.unknown_categories:
            errors.append(f"Unknown policy categories: {', '.join(self.unknown_categories)}")
        if not self.has_categories():
            errors.append("No policy category selected")
        return (not errors, errors)

    def to_dict(self) -> Dict:
        return {
            'group': self.group,
            'categories': list(self.categories),
        }

    def __repr__(self) -> str:
        categories = ALL_CATEGORIES if ALL_CATEGORIES in self.categories else ', '.join(self.categories)
        return f"SelectionConfig(group={self.group!r}, categories=[{categories}])"
