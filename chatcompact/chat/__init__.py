"""Chat completion pipeline."""

from chatcompact.chat.pipeline import ChatPipeline

__all__ = ["ChatPipeline"]
