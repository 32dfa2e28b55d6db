"""Printer-to-profile matching logic."""

from __future__ import annotations

from thermalctl.core.model import DetectedDevice, PrinterProfile

# A MAC prefix pins the hardware vendor, a name token is a weaker hint, and an
# advertised service UUID only says the device speaks the printer protocol.
_MAC_WEIGHT = 4
_NAME_WEIGHT = 2
_SERVICE_WEIGHT = 1


def _mac_prefix_match(device_mac: str, profile: PrinterProfile) -> bool:
    upper_mac = device_mac.upper()
    return any(upper_mac.startswith(prefix) for prefix in profile.match.mac_prefix)


def _name_contains_match(device_name: str, profile: PrinterProfile) -> bool:
    lower_name = device_name.lower()
    return any(token.lower() in lower_name for token in profile.match.name_contains)


def _service_match(device: DetectedDevice, profile: PrinterProfile) -> bool:
    return profile.transport.service_uuid in device.service_uuids


def match_score(device: DetectedDevice, profile: PrinterProfile) -> int:
    score = 0
    if _mac_prefix_match(device.mac, profile):
        score += _MAC_WEIGHT
    if _name_contains_match(device.name, profile):
        score += _NAME_WEIGHT
    if _service_match(device, profile):
        score += _SERVICE_WEIGHT
    return score


def best_profile_for_device(
    device: DetectedDevice,
    profiles: dict[str, PrinterProfile],
) -> PrinterProfile | None:
    """Highest scoring profile; ties keep the first profile by id."""
    best: PrinterProfile | None = None
    best_score = 0
    for profile_id in sorted(profiles):
        profile = profiles[profile_id]
        score = match_score(device, profile)
        if score > best_score:
            best = profile
            best_score = score
    return best
