"""Test suite for AIP Console Tools."""
