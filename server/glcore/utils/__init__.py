from .money import CENT, ZERO, from_cents, quantize_money, to_cents

__all__ = ["CENT", "ZERO", "from_cents", "quantize_money", "to_cents"]
