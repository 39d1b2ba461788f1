"""
Procurement Kernel

Pure building blocks for the purchase-request approval engine:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- Workflow value objects (guards, transitions, workflows)
- Injectable clock and money helpers
"""

__version__ = "0.1.0"
