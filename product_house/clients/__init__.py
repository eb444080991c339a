"""
Outbound service clients.
"""

from product_house.clients.claude_client import ClaudeClient, CompletionResponse

__all__ = ["ClaudeClient", "CompletionResponse"]
