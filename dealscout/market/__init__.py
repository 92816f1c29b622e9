# dealscout/market/__init__.py
from .macro import MacroDataClient, MacroProvider, infer_metro_series_id
from .risk import blend_risk

__all__ = ["MacroDataClient", "MacroProvider", "blend_risk", "infer_metro_series_id"]
