"""tempinbox - disposable email inbox with a hard time-to-live."""

__version__ = "0.1.0"
