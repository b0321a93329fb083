"""ADS-B flight tracker: aggregate live ADS-B messages into aircraft tracks."""

__version__ = "0.1.0"
