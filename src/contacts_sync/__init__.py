"""Reconcile a CardDAV address book into a folder of Markdown contact notes."""

__version__ = "0.4.0"
