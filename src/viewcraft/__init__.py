"""viewcraft - idempotent Jenkins view convergence over the Jenkins CLI."""

__version__ = "0.3.0"
