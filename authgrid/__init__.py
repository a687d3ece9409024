"""authgrid: passwordless public-key challenge-response authentication."""

__version__ = "0.2.0"
