"""
Recipe Migrator - digitize recipe files and move them into Tandoor.

Pipeline:
- Read: images, PDFs, plain text and .docx documents
- Extract: structured recipe via an LLM with schema-constrained output
- Review: edit the extracted record before confirming it
- Export: JSON download or upload to the Tandoor recipe API
"""

__version__ = "1.0.0"
