# dealscout/runs/__init__.py
from .controller import RunController, make_deal
from .summary import build_portfolio_summary

__all__ = ["RunController", "build_portfolio_summary", "make_deal"]
