"""
Product management.

Mirrors customer management: product names are unique (case-insensitive),
prices are bounded, and product photos follow the product record.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from .. import models, schemas, validators
from ..audit import AuditLogger
from ..crud import TableStore
from ..errors import StorageError, ValidationError
from ..storage.blobs import BlobStore, UploadedFile

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = list(schemas.ProductBase.model_fields)


class ProductService:
    """
    Args:
        table: Product entity store
        photos: Blob container for product photos
        audit: Audit logger for the "Product" entity type
    """

    def __init__(self, table: TableStore, photos: BlobStore, audit: AuditLogger):
        self.table = table
        self.photos = photos
        self.audit = audit

    def list_products(self) -> List[models.Product]:
        try:
            return self.table.list()
        except StorageError as e:
            self.audit.log_error("GetAllProducts", e)
            raise StorageError("Failed to retrieve products") from e

    def get_product(self, partition_key: str, row_key: str) -> Optional[models.Product]:
        if not partition_key or not row_key:
            return None
        try:
            return self.table.get(partition_key, row_key)
        except StorageError as e:
            self.audit.log_error(f"GetProductById - {partition_key}/{row_key}", e)
            raise StorageError("Failed to retrieve product") from e

    def products_by_category(self, category: str) -> List[models.Product]:
        wanted = (category or "").lower()
        return [p for p in self.list_products() if (p.category or "").lower() == wanted]

    def products_by_price_range(self, min_price: Decimal, max_price: Decimal) -> List[models.Product]:
        return [p for p in self.list_products() if min_price <= p.price <= max_price]

    def is_product_name_unique(self, product_name: str, exclude_partition_key: Optional[str] = None,
                               exclude_row_key: Optional[str] = None) -> bool:
        """Check that no other product is called ``product_name`` (case-insensitive)."""
        wanted = product_name.lower()
        for product in self.list_products():
            if (product.product_name or "").lower() != wanted:
                continue
            if product.partition_key == exclude_partition_key and product.row_key == exclude_row_key:
                continue
            return False
        return True

    def validate_product(self, product: schemas.ProductBase) -> None:
        is_valid, error = validators.validate_product(product)
        if not is_valid:
            raise ValidationError(error)

    def create_product(self, data: schemas.ProductCreate, photo: Optional[UploadedFile] = None) -> models.Product:
        """
        Create a product, uploading its photo if one is supplied.

        Raises:
            ValidationError: If the input is invalid or the name is taken
            StorageError: If a store rejects the operation
        """
        self.validate_product(data)
        if not self.is_product_name_unique(data.product_name):
            raise ValidationError("Product name already exists")

        product = models.Product(**data.model_dump(include=set(PRODUCT_FIELDS)))
        if product.price is None:
            product.price = Decimal("0")
        try:
            if photo is not None and photo.filename:
                product.product_photo_url = self.photos.upload(photo.filename, photo.content)
            self.table.insert(product)
        except StorageError as e:
            logger.error(f"Failed to create product {data.product_name}: {e}")
            self.audit.log_error("CreateProduct", e)
            raise StorageError("Failed to create product") from e

        logger.info(f"Product created: {product.partition_key}/{product.row_key}")
        self.audit.log("Product Created", self.details(product))
        return product

    def update_product(self, partition_key: str, row_key: str, changes: schemas.ProductUpdate,
                       photo: Optional[UploadedFile] = None) -> Optional[models.Product]:
        """
        Update a product. Only provided, non-empty fields overwrite stored values.

        Returns:
            Updated product, or None if no product matches
        """
        existing = self.get_product(partition_key, row_key)
        if existing is None:
            return None

        updates = {key: value for key, value in changes.model_dump().items() if value not in (None, "")}
        merged = schemas.ProductBase(**{**self.fields(existing), **updates})
        self.validate_product(merged)
        if not self.is_product_name_unique(merged.product_name, partition_key, row_key):
            raise ValidationError("Product name already exists")

        try:
            photo_url = existing.product_photo_url
            if photo is not None and photo.filename:
                if photo_url:
                    self.photos.delete(photo_url)
                photo_url = self.photos.upload(photo.filename, photo.content)
            for key, value in updates.items():
                setattr(existing, key, value)
            existing.product_photo_url = photo_url
            product = self.table.update(existing)
        except StorageError as e:
            logger.error(f"Failed to update product {partition_key}/{row_key}: {e}")
            self.audit.log_error("UpdateProduct", e)
            raise StorageError("Failed to update product") from e

        logger.info(f"Product updated: {partition_key}/{row_key}")
        self.audit.log("Product Updated", self.details(product))
        return product

    def delete_product(self, partition_key: str, row_key: str) -> bool:
        """
        Delete a product and its photo. Existing orders are left untouched.

        Returns:
            True if the product was deleted, False if it does not exist
        """
        product = self.get_product(partition_key, row_key)
        if product is None:
            return False

        if product.product_photo_url:
            try:
                self.photos.delete(product.product_photo_url)
            except StorageError as e:
                logger.warning(f"Photo of product {partition_key}/{row_key} could not be deleted: {e}")

        details = self.details(product)
        try:
            self.table.delete(partition_key, row_key)
        except StorageError as e:
            self.audit.log_error(f"DeleteProduct - {partition_key}/{row_key}", e)
            raise StorageError("Failed to delete product") from e

        logger.info(f"Product deleted: {partition_key}/{row_key}")
        self.audit.log("Product Deleted", details)
        return True

    @staticmethod
    def fields(product: models.Product) -> Dict[str, Any]:
        return {name: getattr(product, name) for name in PRODUCT_FIELDS}

    @staticmethod
    def details(product: models.Product) -> Dict[str, Any]:
        return {
            "PartitionKey": product.partition_key,
            "RowKey": product.row_key,
            "ProductName": product.product_name,
            "Category": product.category,
            "Price": str(product.price),
        }
