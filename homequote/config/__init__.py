"""
Static product-policy tables: item taxonomy, budget bands and style definitions.
"""
