"""
Promotion Service Contract Module

This module contains:
- data_contract.py: model re-exports, test data factories and builders
"""
