from __future__ import annotations

def elgato_to_kelvin(value: int) -> int:
    """Convert Elgato temperature value (143-344) to Kelvin (~7000K-2900K)."""
    return round((-4100 * value) / 201 + 1993300 / 201)


def kelvin_to_elgato(kelvin: int) -> int:
    """Convert Kelvin (2900K-7000K) to the Elgato temperature value (344-143)."""
    return round((1993300 - 201 * kelvin) / 4100)
