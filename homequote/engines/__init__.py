"""
HomeQuote Engines Package

- quotation: Requirement resolution, item selection and session reconciliation
"""
