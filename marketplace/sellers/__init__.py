"""
Sellers package - read access to the marketplace's seller, product and order
tables for billing (customer creation and usage counting).
"""
