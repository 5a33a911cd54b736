"""
Entity store for the Retail Admin service.

``TableStore`` gives every collection (customers, products, orders) the same
table-style contract: full scans, point lookups by (partition_key, row_key),
inserts that assign the keys, and unconditional overwrites.
"""
import logging
import uuid
from datetime import datetime
from typing import Generic, List, Optional, Type, TypeVar
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from . import models
from .errors import StorageError

# Set up logging
logger = logging.getLogger(__name__)

T = TypeVar("T", models.Customer, models.Product, models.Order)


class TableStore(Generic[T]):
    """
    CRUD operations over one entity collection.

    Args:
        db: Database session
        model: Mapped class of the collection
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.name = model.__tablename__

    def list(self) -> List[T]:
        """
        Retrieve every entity in the collection.

        Returns:
            List of entities, in no particular order
        """
        try:
            return self.db.query(self.model).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read table '{self.name}'") from e

    def get(self, partition_key: str, row_key: str) -> Optional[T]:
        """
        Retrieve a single entity by its composite key.

        Args:
            partition_key: Partition of the entity
            row_key: Row identifier of the entity

        Returns:
            The entity, or None if no entity has that key
        """
        try:
            return self.db.get(self.model, (partition_key, row_key))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read {partition_key}/{row_key} from '{self.name}'") from e

    def insert(self, entity: T) -> T:
        """
        Insert a new entity.

        A fresh row key is always generated. The partition key is derived from
        the entity's grouping field, falling back to the collection default.

        Args:
            entity: Entity to insert

        Returns:
            The inserted entity, keys assigned
        """
        entity.partition_key = entity.grouping_value() or self.model.DEFAULT_PARTITION
        entity.row_key = str(uuid.uuid4())
        entity.timestamp = datetime.utcnow()
        try:
            self.db.add(entity)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Insert into '{self.name}' failed: {e}")
            raise StorageError(f"Failed to insert into '{self.name}'") from e
        return entity

    def update(self, entity: T) -> T:
        """
        Overwrite an entity by its composite key (last writer wins).

        Args:
            entity: Entity carrying the new field values

        Returns:
            The stored entity
        """
        entity.timestamp = datetime.utcnow()
        try:
            stored = self.db.merge(entity)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Update of {entity.partition_key}/{entity.row_key} in '{self.name}' failed: {e}")
            raise StorageError(f"Failed to update '{self.name}'") from e
        return stored

    def delete(self, partition_key: str, row_key: str) -> None:
        """
        Delete an entity by its composite key.

        Args:
            partition_key: Partition of the entity
            row_key: Row identifier of the entity

        Raises:
            StorageError: If the entity does not exist or the delete fails
        """
        entity = self.get(partition_key, row_key)
        if entity is None:
            raise StorageError(f"Entity {partition_key}/{row_key} does not exist in '{self.name}'")
        try:
            self.db.delete(entity)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Delete of {partition_key}/{row_key} from '{self.name}' failed: {e}")
            raise StorageError(f"Failed to delete from '{self.name}'") from e


def customers_table(db: Session) -> TableStore[models.Customer]:
    return TableStore(db, models.Customer)


def products_table(db: Session) -> TableStore[models.Product]:
    return TableStore(db, models.Product)


def orders_table(db: Session) -> TableStore[models.Order]:
    return TableStore(db, models.Order)
