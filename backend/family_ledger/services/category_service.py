"""Category directory: lookup or create by trimmed name."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from family_ledger.models.category import Category

logger = logging.getLogger(__name__)


def find_by_name(db: Session, name: str) -> Optional[Category]:
    return (
        db.query(Category)
        .filter(Category.name == name.strip(), Category.is_deleted.is_(False))
        .first()
    )


def create(db: Session, name: str) -> Category:
    category = Category(name=name.strip(), status=1, is_deleted=False)
    db.add(category)
    db.flush()
    logger.info("Created category '%s' (%s)", category.name, category.category_id)
    return category


def find_or_create(db: Session, name: str) -> Category:
    """Return the category named ``name``, creating it when absent.

    Flushes but does not commit; the caller owns the unit of work.
    """
    return find_by_name(db, name) or create(db, name)
