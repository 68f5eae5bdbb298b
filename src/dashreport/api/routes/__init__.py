from dashreport.api.routes import health, report

__all__ = ["health", "report"]
