"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from pathlib import Path

import typer

from thermalctl.core.device_match import best_profile_for_device
from thermalctl.core.errors import ThermalctlError
from thermalctl.core.model import Layout, ReceiptData
from thermalctl.core.profile_loader import load_order
from thermalctl.core.receipt import compile_receipt, receipt_bytes, render_preview
from thermalctl.core.service import DEFAULT_SCAN_TIMEOUT_S, ThermalService

app = typer.Typer(help="Print receipts on Bluetooth LE thermal printers")


def _build_service() -> ThermalService:
    service = ThermalService()
    for warning in service.load_warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log transport activity"),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@app.command("profiles")
def list_profiles() -> None:
    """List available printer profiles."""
    try:
        service = _build_service()
        profiles = service.list_profiles()
        if not profiles:
            typer.echo("No profiles loaded")
            raise typer.Exit(code=1)

        for profile in profiles:
            typer.echo(f"{profile.id}: {profile.name}")
            typer.echo(
                f"  service={profile.transport.service_uuid} "
                f"write={profile.transport.write_char_uuid} "
                f"width={profile.layout.line_width}"
            )
    except ThermalctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("devices")
def list_devices(
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    timeout: float = typer.Option(DEFAULT_SCAN_TIMEOUT_S, "--timeout", help="Scan time in seconds"),
) -> None:
    """Scan for Bluetooth printers and show the matched profile."""
    try:
        service = _build_service()
        devices = asyncio.run(service.list_devices(profile_id=profile, timeout_s=timeout))
        if not devices:
            typer.echo("No Bluetooth printers found")
            return

        for device in devices:
            matched = best_profile_for_device(device, service.profiles)
            typer.echo(f"{device.mac} {device.name} -> {matched.id if matched else '<no-match>'}")
    except ThermalctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("settings")
def show_settings() -> None:
    """Show the effective store settings."""
    try:
        service = _build_service()
        for key, value in asdict(service.settings).items():
            typer.echo(f"{key}: {value}")
    except ThermalctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("preview")
def preview(
    order_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML or JSON order"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID for the layout"),
    output: Path | None = typer.Option(None, "--output", help="Also write the raw ESC/POS bytes here"),
) -> None:
    """Render an order as a receipt without a printer."""
    try:
        service = _build_service()
        receipt = service.build_receipt(load_order(order_file))
        layout = service.get_profile(profile).layout if profile else Layout()
        segments = compile_receipt(receipt, layout=layout)
        typer.echo(render_preview(segments), nl=False)
        if output is not None:
            output.write_bytes(receipt_bytes(segments))
            typer.echo(f"Wrote {output}", err=True)
    except ThermalctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


async def _print_once(
    service: ThermalService,
    receipt: ReceiptData,
    *,
    profile: str | None,
    device: str | None,
    timeout: float,
) -> bool:
    try:
        target = await service.resolve_target(profile, device, timeout_s=timeout)
        if not await service.connect_target(target):
            typer.echo("Error: could not connect to printer", err=True)
            return False
        return await service.print_receipt(receipt)
    finally:
        await service.disconnect()


@app.command("print")
def print_order(
    order_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML or JSON order"),
    device: str | None = typer.Option(None, "--device", help="MAC or partial name"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    timeout: float = typer.Option(DEFAULT_SCAN_TIMEOUT_S, "--timeout", help="Scan time in seconds"),
    auto: bool = typer.Option(False, "--auto", help="Skip printing when auto_print_receipt is off"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not offer a retry on failure"),
) -> None:
    """Price ORDER_FILE with the store settings and print the receipt."""
    try:
        service = _build_service()
        receipt = service.build_receipt(load_order(order_file))
        if auto and not service.settings.auto_print_receipt:
            typer.echo(f"Auto-print disabled; receipt {receipt.receipt_number} not printed")
            return

        while not asyncio.run(
            _print_once(service, receipt, profile=profile, device=device, timeout=timeout)
        ):
            if yes or not typer.confirm("Printing failed. Retry?", default=False):
                typer.echo(f"Error: receipt {receipt.receipt_number} was not printed", err=True)
                raise typer.Exit(code=1)
        typer.echo(f"Printed receipt {receipt.receipt_number}")
    except ThermalctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
