"""
External collaborator services: the LLM client behind intent parsing, summaries,
essentials proposals and floor-plan analysis.
"""
