"""Priority lookup for recurring expenses.

Priority is a static classification, never a statistical inference: an
explicit category mapping wins, then merchant keyword tables, then a default
per expense type.
"""

import re
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.models.category import Category
from app.models.recurring import ExpenseType, Priority


class PriorityClassifier:
    """Maps a merchant key (and optionally its category) to a bill priority."""

    def __init__(
        self,
        keywords: Dict[Priority, List[str]],
        category_priorities: Optional[Dict[str, Priority]] = None,
        default_by_type: Optional[Dict[ExpenseType, Priority]] = None,
    ):
        self.keywords = keywords
        self.category_priorities = {
            name.casefold(): Priority(value) for name, value in (category_priorities or {}).items()
        }
        self.default_by_type = default_by_type or {
            ExpenseType.subscription: Priority.important,
            ExpenseType.variable_recurring: Priority.discretionary,
            ExpenseType.seasonal: Priority.discretionary,
        }

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        extra_category_priorities: Optional[Dict[str, Priority]] = None,
    ) -> "PriorityClassifier":
        config = config or default_settings
        category_priorities: Dict[str, Priority] = {
            name: Priority(value) for name, value in config.category_priorities.items()
        }
        category_priorities.update(extra_category_priorities or {})
        return cls(
            keywords={
                Priority.essential: config.essential_keywords,
                Priority.important: config.important_keywords,
                Priority.discretionary: config.discretionary_keywords,
            },
            category_priorities=category_priorities,
        )

    def classify(
        self,
        merchant_key: str,
        category: Optional[str] = None,
        expense_type: Optional[ExpenseType] = None,
    ) -> Priority:
        if category:
            explicit = self.category_priorities.get(category.casefold())
            if explicit is not None:
                return explicit

        key = merchant_key.casefold()
        # Checked in order so essential keywords win over looser matches
        for priority in (Priority.essential, Priority.important, Priority.discretionary):
            if _matches_any(key, self.keywords.get(priority, [])):
                return priority

        if expense_type is not None:
            return self.default_by_type.get(expense_type, Priority.important)
        return Priority.important


def _matches_any(key: str, keywords: Iterable[str]) -> bool:
    # Whole words only, so "rent" never matches "parentsquare"
    return any(re.search(rf"\b{re.escape(keyword.casefold())}\b", key) for keyword in keywords)


def build_priority_classifier(db: Session, config: Optional[Settings] = None) -> PriorityClassifier:
    """Build the classifier from settings plus category priorities stored in the database."""
    stored = {
        c.name: c.priority
        for c in db.query(Category).filter(Category.priority.isnot(None)).all()
    }
    return PriorityClassifier.from_settings(config, extra_category_priorities=stored)
