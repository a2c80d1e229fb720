"""Indonesian spelled-out amounts ("terbilang") and rupiah formatting for PDFs"""

from typing import Union

_UNITS = [
    "", "Satu", "Dua", "Tiga", "Empat", "Lima", "Enam",
    "Tujuh", "Delapan", "Sembilan", "Sepuluh", "Sebelas",
]

# (magnitude, word) from largest to smallest; 1000 uses "Seribu" when alone
_SCALES = [
    (10 ** 12, "Triliun"),
    (10 ** 9, "Milyar"),
    (10 ** 6, "Juta"),
]


def number_to_words(num: int) -> str:
    if num < 12:
        return _UNITS[num]
    if num < 20:
        return f"{_UNITS[num - 10]} Belas"
    if num < 100:
        tens, rest = divmod(num, 10)
        return f"{_UNITS[tens]} Puluh" + (f" {_UNITS[rest]}" if rest else "")
    if num < 200:
        return "Seratus" + _tail(num % 100)
    if num < 1000:
        return f"{_UNITS[num // 100]} Ratus" + _tail(num % 100)
    if num < 2000:
        return "Seribu" + _tail(num % 1000)
    if num < 10 ** 6:
        return f"{number_to_words(num // 1000)} Ribu" + _tail(num % 1000)

    for magnitude, word in _SCALES:
        if num >= magnitude:
            return f"{number_to_words(num // magnitude)} {word}" + _tail(num % magnitude)

    return ""


def _tail(rest: int) -> str:
    return f" {number_to_words(rest)}" if rest else ""


def terbilang(amount: Union[int, float]) -> str:
    """Whole rupiah in words, e.g. 277500 -> 'Dua Ratus Tujuh Puluh Tujuh Ribu Lima Ratus Rupiah'"""
    rupiah = int(amount)
    if rupiah <= 0:
        return "Nol Rupiah"
    return f"{number_to_words(rupiah)} Rupiah"


def format_rupiah(amount: Union[int, float]) -> str:
    """277500 -> 'Rp 277.500'"""
    return "Rp " + f"{round(amount):,}".replace(",", ".")
