from importlib import import_module

__all__ = [
    "ArbitrageScanService",
    "MarketDataClient",
    "MarketDataProvider",
    "OutcomeQuote",
    "MarketClassifier",
    "market_classifier",
    "DependencyGraph",
    "SettlementLagScorer",
    "QualificationGate",
    "ScanCache",
    "FeeModel",
]

_LAZY_EXPORTS = {
    "ArbitrageScanService": ("arbscan.services.scanner", "ArbitrageScanService"),
    "MarketDataClient": ("arbscan.services.market_data", "MarketDataClient"),
    "MarketDataProvider": ("arbscan.services.market_data", "MarketDataProvider"),
    "OutcomeQuote": ("arbscan.services.market_data", "OutcomeQuote"),
    "MarketClassifier": ("arbscan.services.market_classifier", "MarketClassifier"),
    "market_classifier": ("arbscan.services.market_classifier", "market_classifier"),
    "DependencyGraph": ("arbscan.services.dependency_graph", "DependencyGraph"),
    "SettlementLagScorer": ("arbscan.services.settlement_lag", "SettlementLagScorer"),
    "QualificationGate": ("arbscan.services.qualification", "QualificationGate"),
    "ScanCache": ("arbscan.services.scan_cache", "ScanCache"),
    "FeeModel": ("arbscan.services.fee_model", "FeeModel"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'arbscan.services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
