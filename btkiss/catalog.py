"""Recognition of compatible TNC radios by advertised name."""

from __future__ import annotations

from typing import Iterable

from .constants import COMPATIBLE_MODELS
from .models import Device


def is_compatible(device: Device, models: Iterable[str] = COMPATIBLE_MODELS) -> bool:
    lower_name = device.name.lower()
    return any(model.lower() in lower_name for model in models)


def filter_compatible(
    devices: Iterable[Device],
    models: Iterable[str] = COMPATIBLE_MODELS,
) -> list[Device]:
    """Returns the devices whose name contains a known model string.

    Matching is case-insensitive and the input order is preserved.

    Args:
        devices: Devices as reported by a scan.
        models: Model substrings to accept.

    Returns:
        The compatible devices, in scan order.
    """
    models = tuple(models)
    return [device for device in devices if is_compatible(device, models)]
