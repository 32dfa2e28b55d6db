"""Core data models used across loader, driver, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

SERVICE_UUID = "000018f0-0000-1000-8000-00805f9b34fb"
WRITE_CHAR_UUID = "00002af1-0000-1000-8000-00805f9b34fb"


@dataclass(frozen=True)
class MatchRules:
    name_contains: tuple[str, ...]
    mac_prefix: tuple[str, ...]


@dataclass(frozen=True)
class TransportSpec:
    service_uuid: str = SERVICE_UUID
    write_char_uuid: str = WRITE_CHAR_UUID
    write_with_response: bool = True
    timeout_s: float = 10.0
    chunk_size: int = 10
    write_attempts: int = 3


@dataclass(frozen=True)
class Layout:
    line_width: int = 32
    header_width: int = 16


@dataclass(frozen=True)
class Pacing:
    """Delays, in seconds, that give printer firmware time to keep up."""

    chunk_delay_s: float = 0.02
    flush_delay_s: float = 0.05
    retry_backoff_s: float = 0.05
    init_settle_s: float = 0.1
    pre_cut_s: float = 0.2
    post_cut_s: float = 0.3


@dataclass(frozen=True)
class PrinterProfile:
    id: str
    name: str
    match: MatchRules
    transport: TransportSpec = TransportSpec()
    layout: Layout = Layout()
    pacing: Pacing = Pacing()


@dataclass(frozen=True)
class DetectedDevice:
    mac: str
    name: str
    service_uuids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedTarget:
    device: DetectedDevice
    profile: PrinterProfile


@dataclass(frozen=True)
class ReceiptItem:
    name: str
    quantity: int
    price: float
    total: float


@dataclass(frozen=True)
class ReceiptData:
    receipt_number: str
    order_date: datetime
    items: tuple[ReceiptItem, ...]
    subtotal: float
    tax: float
    total: float
    payment_method: str
    customer_name: str | None = None
    table_number: str | None = None
    cashier: str | None = None
    restaurant_name: str | None = None
    restaurant_address: str | None = None
    restaurant_phone: str | None = None
    footer_message: str | None = None
    tax_rate: float | None = None


@dataclass(frozen=True)
class StoreSettings:
    restaurant_name: str = "Warung Makan Meninting"
    restaurant_address: str = "Jl. Raya Meninting No. 123"
    restaurant_phone: str = "0812-3456-7890"
    tax_rate: float = 10.0
    receipt_footer: str = "Terima Kasih Atas Kunjungan Anda"
    auto_print_receipt: bool = True


@dataclass(frozen=True)
class OrderLine:
    name: str
    quantity: int
    price: float


@dataclass(frozen=True)
class Order:
    items: tuple[OrderLine, ...]
    payment_method: str
    customer_name: str | None = None
    table_number: str | None = None
    cashier: str | None = None
    receipt_number: str | None = None
