"""
Exception types for the quotation pipeline
"""


class QuotationError(Exception):
    """Base class for quotation pipeline errors"""


class CatalogGatewayError(QuotationError):
    """Catalog query failed or timed out"""


class CollaboratorError(QuotationError):
    """An external collaborator (LLM, floor-plan analyzer) failed or returned invalid output"""


class InconsistentSessionPriorError(QuotationError):
    """Persisted session state could not be decoded"""
