"""
streamgate - Multi-Provider Chat Streaming Gateway

One interface for sending a conversation to heterogeneous chat backends
(Cerebras, Cohere, Groq, Mistral, HuggingChat, LMArena) and receiving the
reply as a stream of canonical events.
"""

__version__ = "1.0.0"
__author__ = "streamgate"
