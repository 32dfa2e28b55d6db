"""Compile receipts into ESC/POS byte segments."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from thermalctl.core import escpos
from thermalctl.core.model import Layout, Order, Pacing, ReceiptData, ReceiptItem, StoreSettings
from thermalctl.core.text import (
    format_currency,
    format_date,
    format_rate,
    pad_line,
    wrap_text,
)

DEFAULT_FOOTER = "Terima Kasih\nAtas Kunjungan Anda"
DEFAULT_CASHIER = "Kasir"


@dataclass(frozen=True)
class Segment:
    """Bytes written in one go, followed by a pause for the printer firmware."""

    payload: bytes
    pause_s: float = 0.0


def _join(parts: Iterable[bytes | str]) -> bytes:
    return b"".join(escpos.text(p) if isinstance(p, str) else p for p in parts)


def compile_receipt(
    data: ReceiptData,
    *,
    layout: Layout = Layout(),
    pacing: Pacing = Pacing(),
) -> list[Segment]:
    width = layout.line_width
    double_rule = "=" * width + "\n"
    single_rule = "-" * width + "\n"

    header: list[bytes | str] = [
        escpos.align("center"),
        escpos.double_height(True),
        escpos.bold(True),
    ]
    # Double height halves the usable width, so the name is wrapped by hand.
    name = (data.restaurant_name or "").strip()
    header.extend(line + "\n" for line in wrap_text(name, layout.header_width))
    header.extend([escpos.double_height(False), escpos.bold(False)])
    if data.restaurant_address:
        header.append(data.restaurant_address + "\n")
    if data.restaurant_phone:
        header.append(f"Telp: {data.restaurant_phone}\n")
    header.append(double_rule)

    info: list[bytes | str] = [
        escpos.align("left"),
        f"No. Struk: {data.receipt_number}\n",
        f"Tanggal  : {format_date(data.order_date)}\n",
    ]
    if data.customer_name:
        info.append(f"Customer : {data.customer_name}\n")
    if data.table_number:
        info.append(f"Meja     : {data.table_number}\n")
    info.append(double_rule)

    items: list[bytes | str] = []
    for item in data.items:
        items.append(f"{item.name}\n")
        qty_price = f"{item.quantity} x {format_currency(item.price)}"
        items.append(pad_line(qty_price, format_currency(item.total), width))

    totals: list[bytes | str] = [
        single_rule,
        pad_line("Subtotal:", format_currency(data.subtotal), width),
    ]
    if (data.tax_rate or 0) > 0 and data.tax > 0:
        label = f"Pajak ({format_rate(data.tax_rate)}%) :"
        totals.append(pad_line(label, format_currency(data.tax), width))
    totals.extend(
        [
            double_rule,
            escpos.double_height(True),
            escpos.bold(True),
            pad_line("TOTAL:", format_currency(data.total), width),
            escpos.double_height(False),
            escpos.bold(False),
            double_rule,
            f"Metode Bayar: {data.payment_method}\n",
        ]
    )
    if data.cashier:
        totals.append(f"Kasir: {data.cashier}\n")

    footer_text = data.footer_message if data.footer_message and data.footer_message.strip() else DEFAULT_FOOTER
    footer: list[bytes | str] = [escpos.feed(), escpos.align("center")]
    footer.extend(line + "\n" for line in footer_text.split("\n"))
    footer.append(escpos.feed(2))

    return [
        Segment(escpos.INIT, pacing.init_settle_s),
        Segment(_join(header)),
        Segment(_join(info)),
        Segment(_join(items)),
        Segment(_join(totals)),
        Segment(_join(footer), pacing.pre_cut_s),
        Segment(escpos.cut(), pacing.post_cut_s),
    ]


def receipt_bytes(segments: Iterable[Segment]) -> bytes:
    return b"".join(segment.payload for segment in segments)


def render_preview(segments: Iterable[Segment]) -> str:
    return escpos.strip_controls(receipt_bytes(segments))


def calculate_tax(subtotal: float, tax_rate: float) -> float:
    return subtotal * tax_rate / 100


def new_receipt_number(now: datetime) -> str:
    return f"INV-{int(now.timestamp() * 1000)}"


def build_receipt(order: Order, settings: StoreSettings, *, now: datetime) -> ReceiptData:
    """Price an order with the store settings and produce printable receipt data."""
    items = tuple(
        ReceiptItem(
            name=line.name,
            quantity=line.quantity,
            price=line.price,
            total=line.price * line.quantity,
        )
        for line in order.items
    )
    subtotal = sum(item.total for item in items)
    tax = calculate_tax(subtotal, settings.tax_rate)
    return ReceiptData(
        receipt_number=order.receipt_number or new_receipt_number(now),
        order_date=now,
        items=items,
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
        payment_method=order.payment_method,
        customer_name=order.customer_name,
        table_number=order.table_number,
        cashier=order.cashier or DEFAULT_CASHIER,
        restaurant_name=settings.restaurant_name,
        restaurant_address=settings.restaurant_address,
        restaurant_phone=settings.restaurant_phone,
        footer_message=settings.receipt_footer,
        tax_rate=settings.tax_rate,
    )
