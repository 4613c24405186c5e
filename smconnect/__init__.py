"""SageMaker Space Connector — connection readiness & repair engine."""

__version__ = "0.1.0"
