"""Directory implementation over a record store."""

from typing import Optional

from bankfeed.database.base import (
    ACCOUNTS,
    CLASSES,
    CUSTOMERS,
    INVOICES,
    VENDORS,
    Condition,
    RecordStore,
)
from bankfeed.database import mappers
from bankfeed.domain.collaborators import Directory
from bankfeed.domain.entities import Account, Customer, OpenInvoice, TrackingClass, Vendor

CLOSED_INVOICE_STATUSES = ("Paid", "Draft")


class StoreDirectory(Directory):
    """Reads directory data from the same store the core persists into."""

    def __init__(self, store: RecordStore):
        self.store = store

    def get_account(self, account_id: int) -> Optional[Account]:
        record = self.store.get(ACCOUNTS, account_id)
        return mappers.account_to_domain(record) if record else None

    def find_account_by_name(self, name: str) -> Optional[Account]:
        records = self.store.query(ACCOUNTS, [Condition("name", "eq", name)], limit=1)
        return mappers.account_to_domain(records[0]) if records else None

    def list_accounts(self) -> list[Account]:
        return [mappers.account_to_domain(r) for r in self.store.query(ACCOUNTS, order_by=["name"])]

    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        record = self.store.get(VENDORS, vendor_id)
        return mappers.vendor_to_domain(record) if record else None

    def list_vendors(self) -> list[Vendor]:
        return [mappers.vendor_to_domain(r) for r in self.store.query(VENDORS, order_by=["name"])]

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        record = self.store.get(CUSTOMERS, customer_id)
        return mappers.customer_to_domain(record) if record else None

    def list_customers(self) -> list[Customer]:
        return [
            mappers.customer_to_domain(r) for r in self.store.query(CUSTOMERS, order_by=["name"])
        ]

    def get_class(self, class_id: int) -> Optional[TrackingClass]:
        record = self.store.get(CLASSES, class_id)
        return mappers.class_to_domain(record) if record else None

    def list_classes(self) -> list[TrackingClass]:
        return [mappers.class_to_domain(r) for r in self.store.query(CLASSES, order_by=["name"])]

    def list_open_invoices(self) -> list[OpenInvoice]:
        records = self.store.query(
            INVOICES,
            [Condition("status", "not_in", CLOSED_INVOICE_STATUSES)],
            order_by=["due_date"],
        )
        customer_names = {c.id: c.name for c in self.list_customers()}
        return [
            mappers.invoice_to_domain(r, customer_names.get(r.get("customer_id")))
            for r in records
        ]
