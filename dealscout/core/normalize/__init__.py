# dealscout/core/normalize/__init__.py
from .money import clean_num, parse_cap_rate, parse_money, parse_noi, to_money, to_rate

__all__ = ["clean_num", "parse_cap_rate", "parse_money", "parse_noi", "to_money", "to_rate"]
