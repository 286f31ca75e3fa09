"""Test suite for the storefront API."""
