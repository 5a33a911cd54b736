"""
Customer management.

Validates customer input, enforces email uniqueness, keeps customer photos in
the blob store in step with customer records and audits every change.
"""
import logging
from typing import Dict, List, Optional
from .. import models, schemas, validators
from ..audit import AuditLogger
from ..crud import TableStore
from ..errors import StorageError, ValidationError
from ..storage.blobs import BlobStore, UploadedFile

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = list(schemas.CustomerBase.model_fields)


class CustomerService:
    """
    Args:
        table: Customer entity store
        photos: Blob container for customer photos
        audit: Audit logger for the "Customer" entity type
        email_domain: The only email domain customers may use
    """

    def __init__(self, table: TableStore, photos: BlobStore, audit: AuditLogger, email_domain: str = "gmail.com"):
        self.table = table
        self.photos = photos
        self.audit = audit
        self.email_domain = email_domain

    def list_customers(self) -> List[models.Customer]:
        try:
            return self.table.list()
        except StorageError as e:
            self.audit.log_error("GetAllCustomers", e)
            raise StorageError("Failed to retrieve customers") from e

    def get_customer(self, partition_key: str, row_key: str) -> Optional[models.Customer]:
        """
        Retrieve a customer by key.

        Returns:
            Customer, or None if either key is empty or no customer matches
        """
        if not partition_key or not row_key:
            return None
        try:
            return self.table.get(partition_key, row_key)
        except StorageError as e:
            self.audit.log_error(f"GetCustomerById - {partition_key}/{row_key}", e)
            raise StorageError("Failed to retrieve customer") from e

    def customers_by_province(self, province: str) -> List[models.Customer]:
        wanted = (province or "").lower()
        return [c for c in self.list_customers() if (c.province or "").lower() == wanted]

    def is_email_unique(self, email: str, exclude_partition_key: Optional[str] = None,
                        exclude_row_key: Optional[str] = None) -> bool:
        """
        Check that no other customer uses ``email`` (case-insensitive).

        This is a full scan followed by a separate write; two concurrent
        creates with the same email can both pass.
        """
        wanted = email.lower()
        for customer in self.list_customers():
            if (customer.email or "").lower() != wanted:
                continue
            if customer.partition_key == exclude_partition_key and customer.row_key == exclude_row_key:
                continue
            return False
        return True

    def validate_customer(self, customer: schemas.CustomerBase) -> None:
        is_valid, error = validators.validate_customer(customer, self.email_domain)
        if not is_valid:
            raise ValidationError(error)

    def create_customer(self, data: schemas.CustomerCreate, photo: Optional[UploadedFile] = None) -> models.Customer:
        """
        Create a customer, uploading its photo first if one is supplied.

        Args:
            data: Customer fields
            photo: Optional photo file

        Returns:
            The stored customer with its keys assigned

        Raises:
            ValidationError: If the input is invalid or the email is taken
            StorageError: If a store rejects the operation
        """
        self.validate_customer(data)
        if not self.is_email_unique(data.email):
            raise ValidationError("Email address already exists")

        customer = models.Customer(**data.model_dump(include=set(CUSTOMER_FIELDS)))
        try:
            if photo is not None and photo.filename:
                customer.customer_photo_url = self.photos.upload(photo.filename, photo.content)
            self.table.insert(customer)
        except StorageError as e:
            logger.error(f"Failed to create customer {data.email}: {e}")
            self.audit.log_error("CreateCustomer", e)
            raise StorageError("Failed to create customer") from e

        logger.info(f"Customer created: {customer.partition_key}/{customer.row_key}")
        self.audit.log("Customer Created", self.details(customer))
        return customer

    def update_customer(self, partition_key: str, row_key: str, changes: schemas.CustomerUpdate,
                        photo: Optional[UploadedFile] = None) -> Optional[models.Customer]:
        """
        Update a customer. Only non-empty fields in ``changes`` overwrite stored values.

        A new photo replaces the old one: the old blob is deleted, then the new
        one uploaded. The partition key never changes, even if the province does.

        Returns:
            Updated customer, or None if no customer matches
        """
        existing = self.get_customer(partition_key, row_key)
        if existing is None:
            return None

        updates = {key: value for key, value in changes.model_dump().items() if value}
        merged = schemas.CustomerBase(**{**self.fields(existing), **updates})
        self.validate_customer(merged)
        if not self.is_email_unique(merged.email, partition_key, row_key):
            raise ValidationError("Email address already exists")

        try:
            photo_url = existing.customer_photo_url
            if photo is not None and photo.filename:
                if photo_url:
                    self.photos.delete(photo_url)
                photo_url = self.photos.upload(photo.filename, photo.content)
            for key, value in updates.items():
                setattr(existing, key, value)
            existing.customer_photo_url = photo_url
            customer = self.table.update(existing)
        except StorageError as e:
            logger.error(f"Failed to update customer {partition_key}/{row_key}: {e}")
            self.audit.log_error("UpdateCustomer", e)
            raise StorageError("Failed to update customer") from e

        logger.info(f"Customer updated: {partition_key}/{row_key}")
        self.audit.log("Customer Updated", self.details(customer))
        return customer

    def delete_customer(self, partition_key: str, row_key: str) -> bool:
        """
        Delete a customer and its photo.

        Returns:
            True if the customer was deleted, False if it does not exist
        """
        customer = self.get_customer(partition_key, row_key)
        if customer is None:
            return False

        if customer.customer_photo_url:
            try:
                self.photos.delete(customer.customer_photo_url)
            except StorageError as e:
                logger.warning(f"Photo of customer {partition_key}/{row_key} could not be deleted: {e}")

        details = self.details(customer)
        try:
            self.table.delete(partition_key, row_key)
        except StorageError as e:
            self.audit.log_error(f"DeleteCustomer - {partition_key}/{row_key}", e)
            raise StorageError("Failed to delete customer") from e

        logger.info(f"Customer deleted: {partition_key}/{row_key}")
        self.audit.log("Customer Deleted", details)
        return True

    @staticmethod
    def fields(customer: models.Customer) -> Dict[str, Optional[str]]:
        return {name: getattr(customer, name) for name in CUSTOMER_FIELDS}

    @staticmethod
    def details(customer: models.Customer) -> Dict[str, Optional[str]]:
        return {
            "PartitionKey": customer.partition_key,
            "RowKey": customer.row_key,
            "Name": customer.name,
            "Surname": customer.surname,
            "Email": customer.email,
            "Province": customer.province,
        }
