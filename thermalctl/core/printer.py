"""Receipt printing on top of a printer connection."""

from __future__ import annotations

import logging

from thermalctl.core.connection import PrinterConnection
from thermalctl.core.model import ReceiptData
from thermalctl.core.receipt import compile_receipt

LOGGER = logging.getLogger(__name__)


class ReceiptPrinter:
    def __init__(self, connection: PrinterConnection) -> None:
        self.connection = connection

    async def print_receipt(self, data: ReceiptData) -> bool:
        """Print one receipt, returning False instead of raising on any failure.

        Only individual chunk writes are retried; a failed receipt is left for
        the caller to resubmit.
        """
        profile = self.connection.profile
        try:
            if not self.connection.is_connected():
                LOGGER.error("Failed to print receipt %s: printer not connected", data.receipt_number)
                return False
            segments = compile_receipt(data, layout=profile.layout, pacing=profile.pacing)
            for segment in segments:
                await self.connection.write(segment.payload)
                if segment.pause_s:
                    await self.connection.sleep(segment.pause_s)
        except Exception as exc:
            LOGGER.error(
                "Failed to print receipt %s: %s",
                data.receipt_number,
                exc,
                exc_info=LOGGER.isEnabledFor(logging.DEBUG),
            )
            return False
        return True
