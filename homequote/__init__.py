"""
HomeQuote

Conversational furnishing quotations: turns free-form requests into a priced,
itemized quotation drawn from a catalog, keeping earlier picks stable across turns.
"""

__version__ = "1.0.0"
