"""
shopsync

Multi-tenant Shopify admin backend: OAuth install, webhook reconciliation,
periodic product/customer/order sync into a relational store, and a small
analytics API.
"""

__version__ = "1.0.0"
__author__ = "shopsync team"
