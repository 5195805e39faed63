"""
Finance backend: ECB exchange rate sync and currency conversion.
"""
